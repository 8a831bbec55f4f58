from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Tuple


@dataclass
class CommandResult:
    """Outcome of one external command invocation"""
    command: str
    args: List[str]
    exit_code: int
    output: List[str] = field(default_factory=list)
    error: Optional[str] = None  # Set when the process could not be started

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def __repr__(self):
        return f'<CommandResult {self.command} {" ".join(self.args)} exit={self.exit_code}>'


@dataclass
class ServiceBackupResult:
    """Outcome of backing up a single service"""
    service: str
    stop: Optional[CommandResult] = None
    archive: Optional[CommandResult] = None
    archive_path: Optional[str] = None  # Only set when the archive command succeeded
    start: Optional[CommandResult] = None
    success: bool = True
    error_message: Optional[str] = None
    logs: List[str] = field(default_factory=list)

    def mark_failed(self, message: str):
        self.success = False
        if self.error_message:
            self.error_message = f"{self.error_message}; {message}"
        else:
            self.error_message = message

    def __repr__(self):
        return f'<ServiceBackupResult {self.service!r} success={self.success}>'


@dataclass
class SweepSummary:
    """Files removed (and not removed) by one retention sweep"""
    deleted: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)  # (path, error)
    walk_errors: List[str] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.failed or self.walk_errors)


@dataclass
class BackupRun:
    """One scheduled run: sweep, every service backup, one notification"""
    services: Tuple[str, ...]
    backup_dir: str
    age_limit: timedelta
    contains_errors: bool = False
    results: List[ServiceBackupResult] = field(default_factory=list)
    sweep: Optional[SweepSummary] = None
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    def record(self, result: ServiceBackupResult):
        """Add a service result; any failure marks the whole run."""
        self.results.append(result)
        if not result.success:
            self.contains_errors = True

    @property
    def failed_services(self) -> List[str]:
        return [result.service for result in self.results if not result.success]

    def __repr__(self):
        return f'<BackupRun services={len(self.services)} contains_errors={self.contains_errors}>'
