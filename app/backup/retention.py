"""
Retention policy enforcement for backups.

Walks the backup directory tree and deletes archive files whose
modification time is older than the configured age limit. Files without
the archive suffix are never touched, however old they are.
"""

import os
import logging
from datetime import datetime, timedelta
from typing import Optional

from app.models import SweepSummary
from .compression import ARCHIVE_SUFFIX


logger = logging.getLogger(__name__)


class RetentionSweeper:
    """
    Deletes archives older than an age limit from a directory tree.

    Walk errors and per-file deletion failures are logged and recorded on
    the SweepSummary; neither stops the sweep.
    """

    def __init__(self, age_limit: timedelta, suffix: str = ARCHIVE_SUFFIX):
        """
        Initialize retention sweeper.

        Args:
            age_limit: Archives last modified longer ago than this are deleted
            suffix: File name suffix identifying archives
        """
        self.age_limit = age_limit
        self.suffix = suffix
        self.summary = None

    def sweep(self, directory: str, now: Optional[datetime] = None) -> SweepSummary:
        """
        Remove old archives below `directory`.

        Args:
            directory: Root of the backup tree
            now: Reference time (default: current local time)

        Returns:
            SweepSummary with deleted paths and any errors
        """
        self.summary = SweepSummary()
        cutoff = (now or datetime.now()) - self.age_limit

        self._log(f"Removing backups older than {cutoff.strftime('%Y-%m-%d %H:%M:%S')} from {directory}")

        for root, _dirs, files in os.walk(directory, onerror=self._on_walk_error):
            for name in files:
                if not name.endswith(self.suffix):
                    continue

                path = os.path.join(root, name)
                try:
                    modified = datetime.fromtimestamp(os.lstat(path).st_mtime)
                except OSError as e:
                    self._on_walk_error(e)
                    continue

                if modified < cutoff:
                    self._delete(path)

        self._log(
            f"Retention sweep complete. "
            f"Deleted: {len(self.summary.deleted)}, "
            f"Failed: {len(self.summary.failed)}, "
            f"Walk errors: {len(self.summary.walk_errors)}"
        )
        return self.summary

    def _delete(self, path: str):
        try:
            os.remove(path)
        except FileNotFoundError:
            # Already gone; the end state is the same
            return
        except OSError as e:
            self.summary.failed.append((path, str(e)))
            self._log(f"Failed to delete {path}: {e}", level=logging.ERROR)
            return

        self.summary.deleted.append(path)
        self._log(f"Deleted: {path}")

    def _on_walk_error(self, error: OSError):
        message = f"Cannot read {getattr(error, 'filename', None) or 'path'}: {error}"
        self.summary.walk_errors.append(message)
        self._log(message, level=logging.WARNING)

    def _log(self, message: str, level: int = logging.INFO):
        """
        Add a log message with timestamp.

        Args:
            message: Log message
            level: Logging level for the module logger
        """
        timestamp = datetime.utcnow().strftime('%Y-%m-%d %H:%M:%S UTC')
        self.summary.logs.append(f"[{timestamp}] {message}")
        logger.log(level, message)


def sweep_old_backups(directory: str, age_limit: timedelta) -> SweepSummary:
    """
    Sweep a backup directory with a fresh RetentionSweeper.

    Args:
        directory: Root of the backup tree
        age_limit: Maximum age of archives to keep

    Returns:
        SweepSummary from RetentionSweeper.sweep()
    """
    return RetentionSweeper(age_limit).sweep(directory)
