"""
Backup run coordinator - one complete scheduled run.

Workflow:
1. Sweep archives older than the retention window
2. Back up every configured service, one after another
3. Aggregate: the run contains errors if any service failed
4. Send one completion notification
"""

import os
import logging
import threading
from datetime import datetime
from typing import Optional

from app.config import RunContext
from app.models import BackupRun, ServiceBackupResult
from app.notifier import Notifier
from .executor import ServiceBackupExecutor
from .retention import RetentionSweeper
from .runner import ProcessRunner


logger = logging.getLogger(__name__)


class BackupRunCoordinator:
    """
    Orchestrates sweep, per-service backups and notification.

    Runs are mutually exclusive: a run requested while another is still in
    flight is skipped rather than queued.
    """

    def __init__(
        self,
        context: RunContext,
        runner: Optional[ProcessRunner] = None,
        notifier: Optional[Notifier] = None,
        sweeper: Optional[RetentionSweeper] = None
    ):
        """
        Initialize coordinator.

        Args:
            context: Run configuration
            runner: Process runner shared by every executor
            notifier: Completion notifier (default: built from context)
            sweeper: Retention sweeper (default: built from context)
        """
        self.context = context
        self.runner = runner or ProcessRunner()
        self.notifier = notifier or Notifier(
            context.notify_url,
            verify_tls=context.notify_verify_tls,
            timeout=context.notify_timeout
        )
        self.sweeper = sweeper or RetentionSweeper(context.age_limit)
        self._run_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def run(self) -> Optional[BackupRun]:
        """
        Execute one backup run.

        Returns:
            The finished BackupRun, or None if another run was in flight
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Backup run already in progress, skipping this trigger")
            return None

        try:
            return self._run()
        finally:
            self._run_lock.release()

    def _run(self) -> BackupRun:
        context = self.context
        backup_run = BackupRun(
            services=context.services,
            backup_dir=context.backup_dir,
            age_limit=context.age_limit
        )

        self._ensure_backup_dir()

        logger.info("Removing old backups...")
        backup_run.sweep = self.sweeper.sweep(context.backup_dir)

        logger.info("Creating new backup...")
        for service in context.services:
            backup_run.record(self._backup_service(service))

        backup_run.completed_at = datetime.utcnow()

        if backup_run.contains_errors:
            logger.warning(f"Backup run finished with errors (failed: {backup_run.failed_services})")
        else:
            logger.info(f"Backup run finished successfully ({len(backup_run.results)} services)")

        self.notifier.send(self.summary_message(backup_run))
        return backup_run

    def _backup_service(self, service: str) -> ServiceBackupResult:
        executor = ServiceBackupExecutor(self.context, self.runner)
        try:
            return executor.execute(service)
        except Exception as e:
            logger.exception(f"Unexpected error backing up service {service!r}")
            result = executor.result or ServiceBackupResult(service=service)
            result.mark_failed(f"unexpected error: {e}")
            return result

    def _ensure_backup_dir(self):
        try:
            os.makedirs(self.context.backup_dir, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create backup directory {self.context.backup_dir}: {e}")

    def summary_message(self, backup_run: BackupRun) -> str:
        """One-line outcome message for the notification."""
        if backup_run.contains_errors:
            return f"{self.context.label} backup contains errors"
        return f"{self.context.label} backup completed"
