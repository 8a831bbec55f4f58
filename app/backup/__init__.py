"""
Backup module for Saturn Backup.

This module handles the core backup functionality including:
- External command execution (container runtime, archive tool)
- Archive naming
- Per-service stop/archive/start execution
- Run coordination and result aggregation
- Retention sweeping of old archives
"""

from .runner import ProcessRunner
from .compression import generate_archive_filename, get_archive_path
from .retention import RetentionSweeper
from .executor import ServiceBackupExecutor
from .coordinator import BackupRunCoordinator

__all__ = [
    'ProcessRunner',
    'generate_archive_filename',
    'get_archive_path',
    'RetentionSweeper',
    'ServiceBackupExecutor',
    'BackupRunCoordinator'
]
