import os
import json
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Tuple

from app.utils.cron import build_trigger


class ConfigError(Exception):
    """Raised when the backup configuration is missing or cannot be parsed."""
    pass


class Config:
    """Base configuration"""

    # Backup layout
    BASE_DIR = os.environ.get('BASE_DIR') or '/data'
    SERVICE_LIST = os.environ.get('SERVICE_LIST', '')
    RETENTION_DAYS = os.environ.get('RETENTION_DAYS', '30')

    # External tools
    CONTAINER_RUNTIME = os.environ.get('CONTAINER_RUNTIME') or 'docker'
    ARCHIVE_TOOL = os.environ.get('ARCHIVE_TOOL') or 'tar'
    STRICT_STOP = os.environ.get('STRICT_STOP', 'false')

    # Notifications
    NOTIFY_URL = os.environ.get('NOTIFY_URL')
    NOTIFY_VERIFY_TLS = os.environ.get('NOTIFY_VERIFY_TLS', 'true')
    NOTIFY_TIMEOUT = os.environ.get('NOTIFY_TIMEOUT', '10')
    BACKUP_LABEL = os.environ.get('BACKUP_LABEL') or 'Saturn'

    # Optional JSON config file (baseDir, notifyURL, serviceList, timer)
    CONFIG_FILE = os.environ.get('CONFIG_FILE')

    # Logging
    LOG_DIR = os.environ.get('LOG_DIR')

    # Scheduler
    BACKUP_SCHEDULE = os.environ.get('BACKUP_SCHEDULE') or '0 3 * * *'
    SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'true').lower() == 'true'
    SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE') or 'UTC'


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    # Use local data directory for development
    PROJECT_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    BASE_DIR = os.environ.get('BASE_DIR') or os.path.join(PROJECT_DIR, 'data')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = False
    SCHEDULER_ENABLED = False
    NOTIFY_URL = None


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': ProductionConfig
}


# Keys of the JSON config file and the settings they override
CONFIG_FILE_KEYS = {
    'baseDir': 'BASE_DIR',
    'notifyURL': 'NOTIFY_URL',
    'serviceList': 'SERVICE_LIST',
    'timer': 'BACKUP_SCHEDULE',
}


@dataclass(frozen=True)
class RunContext:
    """
    Everything a backup run needs, resolved once at startup.

    Passed explicitly into the coordinator; nothing in the backup
    package reads Flask config or the environment directly.
    """
    base_dir: str
    backup_dir: str
    data_dir: str
    services: Tuple[str, ...]
    age_limit: timedelta
    schedule: str
    notify_url: Optional[str] = None
    notify_verify_tls: bool = True
    notify_timeout: float = 10.0
    label: str = 'Saturn'
    container_runtime: str = 'docker'
    archive_tool: str = 'tar'
    strict_stop: bool = False


def load_config_file(path: str) -> Dict[str, Any]:
    """
    Read the JSON config file and map its keys onto config names.

    Args:
        path: Path to a JSON file with baseDir, notifyURL, serviceList, timer

    Returns:
        Dict of config names to values (only keys present in the file)

    Raises:
        ConfigError: If the file cannot be opened or parsed
    """
    try:
        with open(path, 'r') as f:
            raw = json.load(f)
    except OSError as e:
        raise ConfigError(f"Error opening config file {path}: {e}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Error parsing config file {path}: {e}")

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    return {
        name: raw[key]
        for key, name in CONFIG_FILE_KEYS.items()
        if key in raw
    }


def parse_service_list(value) -> Tuple[str, ...]:
    """
    Split a comma-separated service list.

    Empty entries are kept so that they fail validation in the executor
    instead of silently disappearing from the run.
    """
    if isinstance(value, (list, tuple)):
        entries = [str(item) for item in value]
    else:
        entries = str(value or '').split(',')

    services = tuple(entry.strip() for entry in entries)
    if not any(services):
        raise ConfigError("SERVICE_LIST is empty: at least one service name is required")
    return services


def parse_bool(value, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ('1', 'true', 'yes', 'on'):
        return True
    if text in ('0', 'false', 'no', 'off', ''):
        return False
    raise ConfigError(f"{name} must be a boolean, got: {value!r}")


def _parse_positive_number(value, name: str, cast):
    try:
        number = cast(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got: {value!r}")
    if number <= 0:
        raise ConfigError(f"{name} must be positive, got: {value!r}")
    return number


def build_run_context(settings: Mapping[str, Any]) -> RunContext:
    """
    Validate raw settings and build the RunContext.

    Args:
        settings: Flask config (or any mapping) holding the Config keys

    Returns:
        RunContext ready to hand to the coordinator

    Raises:
        ConfigError: If any required value is missing or invalid
    """
    base_dir = settings.get('BASE_DIR')
    if not base_dir:
        raise ConfigError("BASE_DIR is not configured")
    base_dir = os.path.abspath(os.path.expanduser(str(base_dir)))

    services = parse_service_list(settings.get('SERVICE_LIST'))

    retention_days = _parse_positive_number(settings.get('RETENTION_DAYS', 30), 'RETENTION_DAYS', int)
    notify_timeout = _parse_positive_number(settings.get('NOTIFY_TIMEOUT', 10), 'NOTIFY_TIMEOUT', float)

    schedule = str(settings.get('BACKUP_SCHEDULE') or '').strip()
    if not schedule:
        raise ConfigError("BACKUP_SCHEDULE is not configured")
    try:
        build_trigger(schedule, timezone=settings.get('SCHEDULER_TIMEZONE', 'UTC'))
    except (ValueError, LookupError) as e:
        raise ConfigError(f"Invalid BACKUP_SCHEDULE {schedule!r}: {e}")

    return RunContext(
        base_dir=base_dir,
        backup_dir=os.path.join(base_dir, 'backup'),
        data_dir=os.path.join(base_dir, 'docker'),
        services=services,
        age_limit=timedelta(days=retention_days),
        schedule=schedule,
        notify_url=settings.get('NOTIFY_URL') or None,
        notify_verify_tls=parse_bool(settings.get('NOTIFY_VERIFY_TLS', True), 'NOTIFY_VERIFY_TLS'),
        notify_timeout=notify_timeout,
        label=settings.get('BACKUP_LABEL') or 'Saturn',
        container_runtime=settings.get('CONTAINER_RUNTIME') or 'docker',
        archive_tool=settings.get('ARCHIVE_TOOL') or 'tar',
        strict_stop=parse_bool(settings.get('STRICT_STOP', False), 'STRICT_STOP'),
    )
