"""
APScheduler configuration and run scheduling for Saturn Backup.

Manages:
- The recurring backup run (based on the configured cron expression)
- Manual "run now" triggers
"""

import logging
from datetime import datetime, timedelta, timezone
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.pool import ThreadPoolExecutor
from app.utils.cron import build_trigger


logger = logging.getLogger(__name__)

BACKUP_JOB_ID = 'backup_run'

# Global scheduler instance, Flask app and coordinator references
scheduler = None
flask_app = None
coordinator = None


def init_scheduler(app, run_coordinator):
    """
    Initialize and configure APScheduler.

    Args:
        app: Flask app instance
        run_coordinator: BackupRunCoordinator invoked on every trigger
    """
    global scheduler, flask_app, coordinator

    if scheduler is not None:
        return scheduler

    flask_app = app
    coordinator = run_coordinator

    timezone_name = app.config.get('SCHEDULER_TIMEZONE', 'UTC')

    jobstores = {
        'default': MemoryJobStore()
    }

    # One worker: backup runs must never overlap
    executors = {
        'default': ThreadPoolExecutor(max_workers=1)
    }

    job_defaults = {
        'coalesce': True,  # Combine multiple pending instances into one
        'max_instances': 1,  # Only one run at a time
        'misfire_grace_time': 300  # 5 minutes grace period for misfires
    }

    scheduler = BackgroundScheduler(
        jobstores=jobstores,
        executors=executors,
        job_defaults=job_defaults,
        timezone=timezone_name
    )

    scheduler.add_job(
        func=_execute_run_wrapper,
        trigger=build_trigger(run_coordinator.context.schedule, timezone=timezone_name),
        id=BACKUP_JOB_ID,
        name=f"{run_coordinator.context.label} backup",
        replace_existing=True
    )

    return scheduler


def start_scheduler():
    """
    Start the APScheduler.

    Should be called after Flask app is initialized.
    """
    global scheduler

    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    if not scheduler.running:
        scheduler.start()
        logger.info(f"APScheduler started (state={scheduler.state})")

        for job in scheduler.get_jobs():
            next_run = job.next_run_time.isoformat() if job.next_run_time else 'N/A'
            logger.info(f"  - {job.id}: {job.name} (next run: {next_run})")
    else:
        logger.info(f"Scheduler already running (state={scheduler.state})")


def stop_scheduler():
    """Stop the APScheduler."""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")


def _execute_run_wrapper():
    """
    Run the backup in scheduler context.

    Exceptions are logged here so that a broken run never kills the
    scheduler thread.
    """
    global flask_app, coordinator

    with flask_app.app_context():
        try:
            logger.info("Scheduler executing backup run")
            backup_run = coordinator.run()
            if backup_run is not None:
                logger.info(
                    f"Backup run completed (contains_errors={backup_run.contains_errors})"
                )
        except Exception as e:
            logger.exception(f"Scheduled backup run failed: {e}")


def trigger_run_now():
    """
    Queue a backup run for immediate execution.

    Raises:
        RuntimeError: If the scheduler is not initialized
    """
    global scheduler

    if scheduler is None:
        raise RuntimeError("Scheduler not initialized")

    now = datetime.now(timezone.utc)

    # 1 second delay to avoid racing the scheduler's wakeup
    scheduler.add_job(
        func=_execute_run_wrapper,
        trigger=DateTrigger(run_date=now + timedelta(seconds=1)),
        id=f"manual_{int(now.timestamp())}",
        name="Manual backup run",
        replace_existing=True
    )


def is_run_in_progress() -> bool:
    """Check whether a backup run is executing right now."""
    return coordinator is not None and coordinator.is_running


def get_scheduled_jobs() -> list:
    """
    Get list of all scheduled jobs.

    Returns:
        List of dicts with job information
    """
    global scheduler

    if scheduler is None:
        return []

    jobs = []

    for job in scheduler.get_jobs():
        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': job.next_run_time.isoformat() if job.next_run_time else None,
            'trigger': str(job.trigger)
        })

    return jobs


def is_scheduler_running() -> bool:
    """Check if scheduler is running in this process."""
    return scheduler is not None and scheduler.running


def get_scheduler_diagnostics() -> dict:
    """
    Get scheduler diagnostics for troubleshooting.

    Returns:
        Dict with scheduler state, jobs, and health info
    """
    global scheduler

    if scheduler is None:
        return {
            'initialized': False,
            'running': False,
            'state': 'NOT_INITIALIZED',
            'note': 'Scheduler not running in this process'
        }

    try:
        return {
            'initialized': True,
            'running': scheduler.running,
            'state': str(scheduler.state),
            'jobs': get_scheduled_jobs()
        }
    except Exception as e:
        return {
            'initialized': True,
            'running': False,
            'state': 'ERROR',
            'error': str(e)
        }
