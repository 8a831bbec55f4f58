# Gunicorn configuration for Saturn Backup
# Run with: gunicorn -c docker/gunicorn_conf.py "app:create_app()"

import os
import logging

logger = logging.getLogger('gunicorn.error')

bind = os.environ.get('GUNICORN_BIND', '0.0.0.0:8080')
workers = int(os.environ.get('GUNICORN_WORKERS', '2'))


def post_fork(server, worker):
    """
    Called in the worker right after fork, before the app is loaded.

    Only the first worker (worker.age == 1) owns the backup scheduler, so
    each scheduled run fires exactly once per tick across all workers.

    Args:
        server: Gunicorn arbiter
        worker: Gunicorn worker instance (uses 'age' attribute: 1, 2, 3, ...)
    """
    if worker.age == 1:
        os.environ['SCHEDULER_WORKER'] = 'true'
        logger.info(f"Worker PID {worker.pid} (age={worker.age}): owns the backup scheduler")
    else:
        os.environ['SCHEDULER_WORKER'] = 'false'
        logger.info(f"Worker PID {worker.pid} (age={worker.age}): HTTP only, scheduler disabled")
