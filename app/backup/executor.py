"""
Service backup executor - backs up one containerized service.

Workflow:
1. Validate the service name (the only step that aborts the backup)
2. Stop the service container
3. Archive the service data directory to <backup_dir>/<service>-<date>.tar.gz
4. Start the service container (always attempted)

Steps 2-4 run regardless of earlier failures. Archive and start failures
mark the result as failed; a stop failure is only recorded unless
strict_stop is enabled.
"""

import os
import logging
from datetime import date, datetime
from typing import Optional

from app.config import RunContext
from app.models import ServiceBackupResult
from .compression import get_archive_path, build_tar_arguments, CompressionError
from .runner import ProcessRunner


logger = logging.getLogger(__name__)


class ServiceBackupExecutor:
    """
    Runs the stop -> archive -> start sequence for a service.
    """

    def __init__(self, context: RunContext, runner: Optional[ProcessRunner] = None):
        """
        Initialize service backup executor.

        Args:
            context: Run configuration (paths, tools, strict_stop)
            runner: Process runner used for every external command
        """
        self.context = context
        self.runner = runner or ProcessRunner()
        self.result = None

    def execute(self, service_name: str, day: Optional[date] = None) -> ServiceBackupResult:
        """
        Back up one service.

        Args:
            service_name: Container/service name
            day: Date stamped into the archive name (default: today)

        Returns:
            ServiceBackupResult with the outcome of every step
        """
        self.result = ServiceBackupResult(service=service_name)

        if not service_name:
            self.result.mark_failed("missing service name")
            self._log("Error: No service name provided.", level=logging.ERROR)
            return self.result

        try:
            self._stop_service()
            self._create_archive(day)
        finally:
            # A stopped service must never be left stopped
            self._start_service()

        if self.result.success:
            self._log(f"Backup for service {service_name} completed successfully.")
        else:
            self._log(f"Backup for service {service_name} completed with errors.", level=logging.WARNING)

        return self.result

    def _stop_service(self):
        service = self.result.service
        self._log(f"Stopping the service: {service}")
        self.result.stop = self.runner.run(self.context.container_runtime, 'stop', service)

        if not self.result.stop.succeeded:
            if self.context.strict_stop:
                self.result.mark_failed(f"stop exited with status {self.result.stop.exit_code}")
                self._log("Failed to stop service", level=logging.ERROR)
            else:
                self._log(
                    f"Failed to stop service (status {self.result.stop.exit_code}), "
                    f"archiving live data",
                    level=logging.WARNING
                )

    def _create_archive(self, day: Optional[date]):
        service = self.result.service
        try:
            archive_path = get_archive_path(self.context.backup_dir, service, day)
        except CompressionError as e:
            self.result.mark_failed(str(e))
            self._log(f"Backup failed: {e}", level=logging.ERROR)
            return

        source_dir = os.path.join(self.context.data_dir, service)

        self._log(f"Creating backup file: {archive_path}")
        self.result.archive = self.runner.run(
            self.context.archive_tool,
            *build_tar_arguments(archive_path, source_dir)
        )

        if self.result.archive.succeeded:
            self.result.archive_path = archive_path
        else:
            self.result.mark_failed(f"archive exited with status {self.result.archive.exit_code}")
            self._log("Backup failed", level=logging.ERROR)

    def _start_service(self):
        service = self.result.service
        self._log(f"Starting the service: {service}")
        self.result.start = self.runner.run(self.context.container_runtime, 'start', service)

        if not self.result.start.succeeded:
            self.result.mark_failed(f"start exited with status {self.result.start.exit_code}")
            self._log("Failed to start service", level=logging.ERROR)

    def _log(self, message: str, level: int = logging.INFO):
        timestamp = datetime.utcnow().strftime('%Y-%m-%d %H:%M:%S UTC')
        self.result.logs.append(f"[{timestamp}] {message}")
        logger.log(level, message)


def backup_service(context: RunContext, service_name: str,
                   runner: Optional[ProcessRunner] = None) -> ServiceBackupResult:
    """
    Back up a single service with a fresh executor.

    Args:
        context: Run configuration
        service_name: Service to back up
        runner: Optional process runner

    Returns:
        ServiceBackupResult from ServiceBackupExecutor.execute()
    """
    executor = ServiceBackupExecutor(context, runner)
    return executor.execute(service_name)
