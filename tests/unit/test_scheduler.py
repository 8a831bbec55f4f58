"""
Unit tests for scheduler (app/scheduler.py).

Tests APScheduler configuration and run triggering.
"""

from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from app import scheduler as scheduler_module
from app.backup.coordinator import BackupRunCoordinator


@pytest.fixture
def mock_coordinator(run_context):
    coordinator = MagicMock(spec=BackupRunCoordinator)
    coordinator.context = run_context
    coordinator.is_running = False
    return coordinator


class TestSchedulerInitialization:
    """Test scheduler initialization."""

    def teardown_method(self):
        """Clean up after each test."""
        scheduler_module.scheduler = None
        scheduler_module.flask_app = None
        scheduler_module.coordinator = None

    @patch('app.scheduler.BackgroundScheduler')
    def test_init_scheduler(self, mock_scheduler_class, app, mock_coordinator):
        """Test scheduler initialization."""
        mock_scheduler = MagicMock()
        mock_scheduler_class.return_value = mock_scheduler

        result = scheduler_module.init_scheduler(app, mock_coordinator)

        assert result == mock_scheduler
        assert scheduler_module.scheduler == mock_scheduler
        assert scheduler_module.flask_app == app
        assert scheduler_module.coordinator == mock_coordinator

        call_kwargs = mock_scheduler_class.call_args[1]
        assert call_kwargs['timezone'] == 'UTC'
        assert call_kwargs['job_defaults']['max_instances'] == 1
        assert call_kwargs['job_defaults']['coalesce'] is True

    @patch('app.scheduler.BackgroundScheduler')
    def test_init_registers_cron_job(self, mock_scheduler_class, app, mock_coordinator):
        """Test the recurring run uses the configured cron expression."""
        mock_scheduler = MagicMock()
        mock_scheduler_class.return_value = mock_scheduler

        scheduler_module.init_scheduler(app, mock_coordinator)

        mock_scheduler.add_job.assert_called_once()
        job_kwargs = mock_scheduler.add_job.call_args[1]
        assert job_kwargs['id'] == scheduler_module.BACKUP_JOB_ID
        assert job_kwargs['func'] == scheduler_module._execute_run_wrapper
        assert isinstance(job_kwargs['trigger'], CronTrigger)
        assert job_kwargs['name'] == 'Saturn backup'

    @patch('app.scheduler.BackgroundScheduler')
    def test_weekly_job_fires_on_sunday(self, mock_scheduler_class, app, mock_coordinator):
        """Test day of week 0 in the configured schedule means Sunday."""
        mock_scheduler = MagicMock()
        mock_scheduler_class.return_value = mock_scheduler
        mock_coordinator.context = replace(mock_coordinator.context, schedule='0 3 * * 0')

        scheduler_module.init_scheduler(app, mock_coordinator)

        trigger = mock_scheduler.add_job.call_args[1]['trigger']
        next_fire = trigger.get_next_fire_time(None, datetime(2024, 1, 1, tzinfo=timezone.utc))
        assert next_fire == datetime(2024, 1, 7, 3, 0, tzinfo=timezone.utc)
        assert next_fire.strftime('%A') == 'Sunday'

    @patch('app.scheduler.BackgroundScheduler')
    def test_init_scheduler_only_once(self, mock_scheduler_class, app, mock_coordinator):
        """Test scheduler is only initialized once."""
        mock_scheduler_class.return_value = MagicMock()

        result1 = scheduler_module.init_scheduler(app, mock_coordinator)
        result2 = scheduler_module.init_scheduler(app, mock_coordinator)

        assert result1 == result2
        mock_scheduler_class.assert_called_once()


class TestSchedulerLifecycle:
    """Test scheduler start/stop operations."""

    def test_start_scheduler(self, mock_scheduler):
        """Test starting the scheduler."""
        scheduler_module.start_scheduler()

        mock_scheduler.start.assert_called_once()

    def test_start_scheduler_already_running(self, mock_scheduler):
        """Test starting an already running scheduler is a no-op."""
        mock_scheduler.running = True

        scheduler_module.start_scheduler()

        mock_scheduler.start.assert_not_called()

    def test_start_scheduler_not_initialized(self):
        """Test starting before init raises."""
        scheduler_module.scheduler = None

        with pytest.raises(RuntimeError, match="not initialized"):
            scheduler_module.start_scheduler()

    def test_stop_scheduler(self, mock_scheduler):
        """Test stopping a running scheduler."""
        mock_scheduler.running = True

        scheduler_module.stop_scheduler()

        mock_scheduler.shutdown.assert_called_once()

    def test_stop_scheduler_not_running(self, mock_scheduler):
        """Test stopping a stopped scheduler does nothing."""
        scheduler_module.stop_scheduler()

        mock_scheduler.shutdown.assert_not_called()


class TestRunTriggers:
    """Test run execution and manual triggers."""

    def test_execute_run_wrapper(self, app, mock_scheduler, mock_coordinator):
        """Test the scheduled job runs the coordinator."""
        scheduler_module.flask_app = app
        scheduler_module.coordinator = mock_coordinator
        mock_coordinator.run.return_value = MagicMock(contains_errors=False)

        scheduler_module._execute_run_wrapper()

        mock_coordinator.run.assert_called_once()

    def test_execute_run_wrapper_swallows_errors(self, app, mock_scheduler, mock_coordinator):
        """Test a crashing run does not propagate into the scheduler thread."""
        scheduler_module.flask_app = app
        scheduler_module.coordinator = mock_coordinator
        mock_coordinator.run.side_effect = RuntimeError('boom')

        scheduler_module._execute_run_wrapper()

        mock_coordinator.run.assert_called_once()

    def test_trigger_run_now(self, mock_scheduler):
        """Test a one-off job is queued with a date trigger."""
        scheduler_module.trigger_run_now()

        mock_scheduler.add_job.assert_called_once()
        job_kwargs = mock_scheduler.add_job.call_args[1]
        assert isinstance(job_kwargs['trigger'], DateTrigger)
        assert job_kwargs['id'].startswith('manual_')
        assert job_kwargs['func'] == scheduler_module._execute_run_wrapper

    def test_trigger_run_now_not_initialized(self):
        scheduler_module.scheduler = None

        with pytest.raises(RuntimeError, match="not initialized"):
            scheduler_module.trigger_run_now()

    def test_is_run_in_progress(self, mock_coordinator):
        scheduler_module.coordinator = None
        assert scheduler_module.is_run_in_progress() is False

        scheduler_module.coordinator = mock_coordinator
        mock_coordinator.is_running = True
        try:
            assert scheduler_module.is_run_in_progress() is True
        finally:
            scheduler_module.coordinator = None


class TestSchedulerQueries:
    """Test job listing and diagnostics."""

    def test_get_scheduled_jobs_without_scheduler(self):
        scheduler_module.scheduler = None

        assert scheduler_module.get_scheduled_jobs() == []

    def test_get_scheduled_jobs(self, mock_scheduler):
        job = MagicMock()
        job.id = 'backup_run'
        job.name = 'Saturn backup'
        job.next_run_time = datetime(2024, 1, 16, 3, 0)
        job.trigger = "cron[minute='0', hour='3']"
        mock_scheduler.get_jobs.return_value = [job]

        jobs = scheduler_module.get_scheduled_jobs()

        assert jobs == [{
            'id': 'backup_run',
            'name': 'Saturn backup',
            'next_run': '2024-01-16T03:00:00',
            'trigger': "cron[minute='0', hour='3']"
        }]

    def test_is_scheduler_running(self, mock_scheduler):
        assert scheduler_module.is_scheduler_running() is False

        mock_scheduler.running = True
        assert scheduler_module.is_scheduler_running() is True

    def test_diagnostics_not_initialized(self):
        scheduler_module.scheduler = None

        diagnostics = scheduler_module.get_scheduler_diagnostics()

        assert diagnostics['initialized'] is False
        assert diagnostics['state'] == 'NOT_INITIALIZED'

    def test_diagnostics(self, mock_scheduler):
        mock_scheduler.running = True

        diagnostics = scheduler_module.get_scheduler_diagnostics()

        assert diagnostics['initialized'] is True
        assert diagnostics['running'] is True
        assert diagnostics['jobs'] == []
