import os
import signal
import logging
from logging.handlers import RotatingFileHandler

from pgvault.config import BackupSettings, ConfigError, load_config

logger = logging.getLogger(__name__)


def configure_logging(config):
    """Configure application logging"""

    # Create logs directory if it doesn't exist
    log_dir = config['LOG_DIR']
    os.makedirs(log_dir, exist_ok=True)

    # Set log level based on environment
    log_level = logging.DEBUG if config.get('DEBUG', False) else logging.INFO

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )
    console_handler.setFormatter(console_formatter)

    # File handler
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, 'pgvault.log'),
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

    # APScheduler is chatty at DEBUG
    logging.getLogger('apscheduler').setLevel(max(log_level, logging.INFO))

    logger.info(f"Logging configured (level: {logging.getLevelName(log_level)})")


def create_service(config_name=None, environ=None):
    """
    Backup service factory.

    Loads configuration, sets up logging and the temp directory, reads the
    connection settings and registers the daily backup job.

    Args:
        config_name: 'development' or 'production' (default: $PGVAULT_ENV)
        environ: Environment mapping for BackupSettings (default: os.environ)

    Returns:
        The initialized (not yet started) scheduler

    Raises:
        ConfigError: If configuration is invalid or incomplete
    """
    from pgvault.scheduler import init_scheduler

    config = load_config(config_name)
    configure_logging(config)

    os.makedirs(config['TEMP_DIR'], exist_ok=True)

    settings = BackupSettings.from_env(environ)
    logger.info("Backup target: %r", settings)

    return init_scheduler(config, settings)


def main(config_name=None) -> int:
    """
    Process entry point.

    Starts the scheduler and blocks until a signal arrives or a backup run
    fails. Returns the process exit status.
    """
    from pgvault import scheduler as scheduler_module

    try:
        create_service(config_name)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    def _handle_signal(signum, _frame):
        logger.info("Received signal %s; stopping scheduler", signum)
        scheduler_module.request_shutdown(0)

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    scheduler_module.start_scheduler()
    logger.info("Backup cron active: '%s' (%s)",
                scheduler_module.backup_config['BACKUP_CRON'],
                scheduler_module.backup_config['SCHEDULER_TIMEZONE'])

    if scheduler_module.backup_config['RUN_NOW']:
        scheduler_module.trigger_backup_now()

    exit_code = scheduler_module.wait_for_shutdown()
    scheduler_module.stop_scheduler()

    if exit_code:
        logger.error("Exiting with status %s", exit_code)
    return exit_code
