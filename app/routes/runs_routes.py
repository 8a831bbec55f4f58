"""
Backup run routes - status and manual trigger endpoints.
"""

from flask import Blueprint, jsonify, current_app

from app.scheduler import (
    trigger_run_now,
    is_run_in_progress,
    is_scheduler_running,
    get_scheduler_diagnostics
)


bp = Blueprint('runs', __name__, url_prefix='/api/runs')


@bp.route('/status', methods=['GET'])
def get_status():
    """
    Get backup configuration and scheduler status.

    Returns:
        JSON with:
        - services: Configured service names, in run order
        - schedule: Cron expression of the recurring run
        - retention_days: Archive age limit
        - run_in_progress: Whether a run is executing right now
        - scheduler: Scheduler diagnostics
    """
    context = current_app.extensions['backup_coordinator'].context

    return jsonify({
        'services': list(context.services),
        'schedule': context.schedule,
        'retention_days': context.age_limit.days,
        'backup_dir': context.backup_dir,
        'notifications_enabled': bool(context.notify_url),
        'run_in_progress': is_run_in_progress(),
        'scheduler': get_scheduler_diagnostics()
    })


@bp.route('', methods=['POST'])
def run_now():
    """
    Queue a backup run for immediate execution.

    Returns:
        202 when queued, 409 if a run is in progress, 503 if no scheduler
        runs in this process
    """
    if not is_scheduler_running():
        return jsonify({'error': 'Scheduler is not running in this process'}), 503

    if is_run_in_progress():
        return jsonify({'error': 'A backup run is already in progress'}), 409

    try:
        trigger_run_now()
    except Exception as e:
        current_app.logger.error(f"Failed to queue backup run: {e}")
        return jsonify({'error': str(e)}), 500

    return jsonify({'message': 'Backup run has been queued for immediate execution'}), 202
