"""
Shared pytest fixtures for Saturn Backup tests.

This module provides fixtures for:
- Flask app, test client and CLI runner
- A base directory laid out like a real host (docker/<service>, backup/)
- RunContext built from test settings
- A scripted process runner standing in for docker and tar
- Helpers for creating aged files
"""

import os
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from app import create_app
from app import scheduler as scheduler_module
from app.config import build_run_context
from app.models import CommandResult
from app.notifier import Notifier


class ScriptedRunner:
    """
    Process runner that records invocations instead of running them.

    Exit codes are looked up by (step, service) first, then by step, where
    step is 'stop', 'start' or 'archive'. A successful archive step writes
    the destination file so callers can assert on the filesystem.
    """

    def __init__(self, exit_codes=None, create_archives=True):
        self.exit_codes = exit_codes or {}
        self.create_archives = create_archives
        self.calls = []

    def run(self, command, *args):
        self.calls.append((command, *args))

        if args and args[0] == '-zcvf':
            step, service = 'archive', os.path.basename(args[2])
        else:
            step, service = args[0], args[1]

        exit_code = self.exit_codes.get((step, service), self.exit_codes.get(step, 0))

        if step == 'archive' and exit_code == 0 and self.create_archives:
            Path(args[1]).write_bytes(b'archive for ' + service.encode())

        return CommandResult(command=command, args=list(args), exit_code=exit_code)

    def steps(self):
        """Invocations as (step, service) pairs, in call order."""
        result = []
        for call in self.calls:
            if call[1] == '-zcvf':
                result.append(('archive', os.path.basename(call[3])))
            else:
                result.append((call[1], call[2]))
        return result


def make_aged_file(path, age_days, content=b'data'):
    """Create a file whose mtime is `age_days` in the past."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    timestamp = time.time() - age_days * 24 * 3600
    os.utime(path, (timestamp, timestamp))
    return path


@pytest.fixture
def base_dir(tmp_path):
    """
    Create a base directory with data for services alpha and beta.

    Layout:
    - docker/alpha/db.sqlite
    - docker/beta/config.yml
    - backup/
    """
    base = tmp_path / 'saturn'
    (base / 'docker' / 'alpha').mkdir(parents=True)
    (base / 'docker' / 'alpha' / 'db.sqlite').write_text('alpha data')
    (base / 'docker' / 'beta').mkdir(parents=True)
    (base / 'docker' / 'beta' / 'config.yml').write_text('beta: true')
    (base / 'backup').mkdir()
    return base


@pytest.fixture
def settings(base_dir, tmp_path):
    """Raw settings as they would appear in Flask config."""
    return {
        'BASE_DIR': str(base_dir),
        'SERVICE_LIST': 'alpha,beta',
        'RETENTION_DAYS': '30',
        'BACKUP_SCHEDULE': '0 3 * * *',
        'NOTIFY_URL': 'https://notify.example.com/hooks/backup',
        'LOG_DIR': str(tmp_path / 'logs'),
    }


@pytest.fixture
def run_context(settings):
    return build_run_context(settings)


@pytest.fixture
def scripted_runner():
    return ScriptedRunner()


@pytest.fixture
def mock_notifier():
    """Notifier double; send() reports delivery."""
    notifier = MagicMock(spec=Notifier)
    notifier.send.return_value = True
    return notifier


@pytest.fixture(scope='function')
def app(settings):
    """
    Create Flask app with test configuration.

    The scheduler is disabled; tests that need it patch it in.
    """
    app = create_app('testing', config_overrides=settings)

    yield app

    scheduler_module.scheduler = None
    scheduler_module.flask_app = None
    scheduler_module.coordinator = None


@pytest.fixture(scope='function')
def client(app):
    """Flask test client for making HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def cli_runner(app):
    """Flask CLI test runner."""
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def mock_scheduler():
    """
    Install a mocked APScheduler as the module-level scheduler.
    """
    scheduler_instance = MagicMock()
    scheduler_instance.running = False
    scheduler_instance.state = 0
    scheduler_instance.get_jobs.return_value = []

    scheduler_module.scheduler = scheduler_instance

    yield scheduler_instance

    scheduler_module.scheduler = None
    scheduler_module.flask_app = None
    scheduler_module.coordinator = None


@pytest.fixture
def runner_factory():
    """Build ScriptedRunner instances with custom exit codes."""
    return ScriptedRunner


@pytest.fixture
def aged_file():
    """Create files with a back-dated mtime."""
    return make_aged_file
