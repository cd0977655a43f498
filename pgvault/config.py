import os
from typing import Any, Dict, Mapping, Optional

from apscheduler.triggers.cron import CronTrigger

DEFAULT_DB_PORT = '10586'
DEFAULT_REGION = 'us-east-1'


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).lower() == 'true'


class Config:
    """Base configuration"""

    # Local working files (dump + gzip artifact)
    TEMP_DIR = os.environ.get('TEMP_DIR') or '/tmp'
    LOG_DIR = os.environ.get('LOG_DIR') or '/data/logs'

    # Scheduler
    SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE') or 'UTC'
    BACKUP_CRON = os.environ.get('BACKUP_CRON') or '0 3 * * *'
    RUN_NOW = _env_flag('RUN_NOW')

    # Retention
    DAILY_RETENTION = os.environ.get('DAILY_RETENTION') or 7
    WEEKLY_RETENTION = os.environ.get('WEEKLY_RETENTION') or 4
    WEEKLY_PROMOTION_WEEKDAY = 0  # Monday

    DEBUG = False


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    # Use local data directory for development
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    DATA_DIR = os.path.join(BASE_DIR, 'data')
    TEMP_DIR = os.path.join(DATA_DIR, 'temp')
    LOG_DIR = os.path.join(DATA_DIR, 'logs')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'default': ProductionConfig
}


def load_config(config_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Load a configuration class into a plain dict.

    Args:
        config_name: Key of `config`; defaults to $PGVAULT_ENV or 'production'

    Returns:
        Dict of the upper-case settings of the selected class

    Raises:
        ConfigError: If config_name is unknown or a setting is invalid
    """
    if config_name is None:
        config_name = os.environ.get('PGVAULT_ENV', 'production')

    if config_name not in config:
        raise ConfigError(
            f"Unknown configuration: {config_name}. Valid options: {list(config.keys())}"
        )

    config_class = config[config_name]
    return validate_config({
        key: getattr(config_class, key)
        for key in dir(config_class)
        if key.isupper()
    })


def _non_negative_int(values: Dict[str, Any], key: str, upper: Optional[int] = None) -> int:
    raw = values[key]
    try:
        number = int(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from e
    if number < 0 or (upper is not None and number > upper):
        bounds = f"between 0 and {upper}" if upper is not None else ">= 0"
        raise ConfigError(f"{key} must be {bounds}, got {number}")
    return number


def validate_config(values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check and normalize process settings before anything is scheduled.

    Retention counts and the promotion weekday become ints; the cron
    expression is parsed in the configured timezone.

    Raises:
        ConfigError: If a setting is invalid
    """
    values = dict(values)
    values['DAILY_RETENTION'] = _non_negative_int(values, 'DAILY_RETENTION')
    values['WEEKLY_RETENTION'] = _non_negative_int(values, 'WEEKLY_RETENTION')
    values['WEEKLY_PROMOTION_WEEKDAY'] = _non_negative_int(values, 'WEEKLY_PROMOTION_WEEKDAY', upper=6)

    try:
        CronTrigger.from_crontab(values['BACKUP_CRON'], timezone=values['SCHEDULER_TIMEZONE'])
    except (ValueError, KeyError, TypeError) as e:
        raise ConfigError(
            f"Invalid schedule '{values['BACKUP_CRON']}' ({values['SCHEDULER_TIMEZONE']}): {e}"
        ) from e

    return values


class BackupSettings:
    """
    Connection parameters for one backup run.

    Holds where to dump from (database) and where to upload to (object
    storage). Built from the environment by from_env() and passed to the
    executor explicitly.
    """

    # attribute -> environment variable
    REQUIRED = {
        'storage_endpoint': 'MINIO_ENDPOINT',
        'access_key': 'MINIO_ACCESS_KEY',
        'secret_key': 'MINIO_SECRET_KEY',
        'bucket': 'BACKUP_BUCKET',
        'db_host': 'DB_HOST',
        'db_name': 'DB_NAME',
        'db_user': 'DB_USER',
        'db_pass': 'DB_PASS',
    }

    def __init__(
        self,
        storage_endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        db_host: str,
        db_name: str,
        db_user: str,
        db_pass: str,
        db_port: str = DEFAULT_DB_PORT,
        region: str = DEFAULT_REGION
    ):
        self.storage_endpoint = storage_endpoint
        self.access_key = access_key
        self.secret_key = secret_key
        self.bucket = bucket
        self.db_host = db_host
        self.db_port = str(db_port)
        self.db_name = db_name
        self.db_user = db_user
        self.db_pass = db_pass
        self.region = region

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'BackupSettings':
        """
        Read settings from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            BackupSettings instance

        Raises:
            ConfigError: If any required variable is missing or empty
        """
        if environ is None:
            environ = os.environ

        missing = [var for var in cls.REQUIRED.values() if not environ.get(var)]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

        db_port = environ.get('DB_PORT') or DEFAULT_DB_PORT
        if not db_port.isdigit():
            raise ConfigError(f"DB_PORT must be a number, got {db_port!r}")

        values = {attr: environ[var] for attr, var in cls.REQUIRED.items()}
        return cls(
            db_port=db_port,
            region=environ.get('S3_REGION') or DEFAULT_REGION,
            **values
        )

    def __repr__(self):
        return (
            f"BackupSettings(endpoint={self.storage_endpoint!r}, bucket={self.bucket!r}, "
            f"db={self.db_user}@{self.db_host}:{self.db_port}/{self.db_name})"
        )
