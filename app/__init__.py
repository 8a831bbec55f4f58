import os
import sys
import logging
from logging.handlers import RotatingFileHandler

import click
from flask import Flask

from app.config import config, load_config_file, build_run_context, ConfigError


def configure_logging(app):
    """Configure application logging"""

    # Create logs directory if it doesn't exist
    log_dir = app.config.get('LOG_DIR') or os.path.join(app.config.get('BASE_DIR') or os.getcwd(), 'logs')
    os.makedirs(log_dir, exist_ok=True)

    # Set log level based on environment
    log_level = logging.DEBUG if app.config.get('DEBUG', False) else logging.INFO

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )
    console_handler.setFormatter(console_formatter)

    # File handler
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, 'saturn-backup.log'),
        maxBytes=10485760,  # 10MB
        backupCount=10
    )
    file_handler.setLevel(log_level)
    file_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s'
    )
    file_handler.setFormatter(file_formatter)

    # Configure root logger
    logging.basicConfig(level=log_level, handlers=[console_handler, file_handler])

    # Configure Flask app logger
    app.logger.setLevel(log_level)
    app.logger.addHandler(console_handler)
    app.logger.addHandler(file_handler)

    app.logger.info(f"Logging configured (level: {logging.getLevelName(log_level)})")


def register_commands(app):
    """Register Flask CLI commands"""

    @app.cli.command('backup-now')
    def backup_now():
        """Run one backup immediately, in the foreground."""
        coordinator = app.extensions['backup_coordinator']
        backup_run = coordinator.run()

        if backup_run is None:
            click.echo("A backup run is already in progress", err=True)
            sys.exit(1)

        for result in backup_run.results:
            status = 'ok' if result.success else f"FAILED ({result.error_message})"
            click.echo(f"{result.service or '<empty>'}: {status}")

        click.echo(f"Deleted {len(backup_run.sweep.deleted)} old backups")
        click.echo(coordinator.summary_message(backup_run))

        if backup_run.contains_errors:
            sys.exit(1)


def create_app(config_name=None, config_overrides=None):
    """
    Flask application factory.

    Raises:
        ConfigError: If the backup configuration is missing or invalid.
            Nothing is scheduled in that case.
    """
    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'production')

    app.config.from_object(config[config_name])

    if config_overrides:
        app.config.update(config_overrides)

    # JSON config file takes precedence over environment variables
    if app.config.get('CONFIG_FILE'):
        app.config.update(load_config_file(app.config['CONFIG_FILE']))

    # Configure logging
    configure_logging(app)

    # Validate backup settings before anything gets scheduled
    try:
        run_context = build_run_context(app.config)
    except ConfigError as e:
        app.logger.critical(f"Invalid configuration: {e}")
        raise

    app.logger.info(
        f"Backing up {len(run_context.services)} services "
        f"({', '.join(s or '<empty>' for s in run_context.services)}) "
        f"on schedule '{run_context.schedule}', keeping {run_context.age_limit.days} days"
    )

    from app.backup.coordinator import BackupRunCoordinator
    coordinator = BackupRunCoordinator(run_context)
    app.extensions['backup_coordinator'] = coordinator

    # Register blueprints
    from app.routes import runs_routes
    app.register_blueprint(runs_routes.bp)

    register_commands(app)

    # Health check endpoint
    @app.route('/health')
    def health():
        return {'status': 'healthy'}, 200

    # Initialize and start scheduler (only in designated worker or development child process)
    from app.scheduler import init_scheduler, start_scheduler, stop_scheduler
    import atexit

    is_reloader_child = os.environ.get('WERKZEUG_RUN_MAIN') == 'true'
    is_development = app.config.get('DEBUG', False)
    is_scheduler_worker = os.environ.get('SCHEDULER_WORKER', 'true').lower() == 'true'

    # Scheduler initialization logic:
    # - Disabled entirely by SCHEDULER_ENABLED=False (tests, CLI-only use)
    # - Development mode: Only in Flask reloader child process (not parent)
    # - Production mode: Only in designated scheduler worker (SCHEDULER_WORKER=true)
    if not app.config.get('SCHEDULER_ENABLED', True):
        should_init_scheduler = False
    elif is_development:
        should_init_scheduler = is_reloader_child
        app.logger.info(f"Development mode: is_reloader_child={is_reloader_child}")
    else:
        should_init_scheduler = is_scheduler_worker
        app.logger.info(f"Production mode: is_scheduler_worker={is_scheduler_worker}")

    if should_init_scheduler:
        app.logger.info("Initializing scheduler in this process...")
        init_scheduler(app, coordinator)
        start_scheduler()

        # Stop scheduler on app shutdown
        atexit.register(stop_scheduler)
        app.logger.info("Scheduler initialized and started successfully")
    else:
        app.logger.info("Scheduler initialization skipped in this process")

    return app
