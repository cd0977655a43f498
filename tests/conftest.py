"""
Shared pytest fixtures for pgvault tests.

This module provides fixtures for:
- Configuration dicts and BackupSettings
- Mock S3 bucket (moto)
- A dump provider that writes a fake SQL file instead of calling pg_dump
- Temporary file fixtures
"""

from datetime import datetime
from unittest.mock import MagicMock

import pytest
import boto3
from moto import mock_aws

from pgvault.config import BackupSettings
from pgvault.backup.dump import DumpProvider
from pgvault.backup.errors import DumpError
from pgvault.backup.storage import S3Storage

BUCKET = 'test-bucket'

SAMPLE_SQL = (
    "-- PostgreSQL database dump\n"
    "CREATE TABLE plots (id integer PRIMARY KEY, name text);\n"
    "INSERT INTO plots VALUES (1, 'north'), (2, 'south');\n"
)


class FakeDumpProvider(DumpProvider):
    """Writes SAMPLE_SQL to the destination, or fails on demand."""

    def __init__(self, fail: bool = False, content: str = SAMPLE_SQL):
        self.fail = fail
        self.content = content
        self.calls = []

    def dump(self, settings, destination):
        self.calls.append(destination)
        if self.fail:
            raise DumpError("pg_dump exited with code 1: connection refused")
        with open(destination, 'w') as f:
            f.write(self.content)
        return destination


@pytest.fixture
def settings():
    """BackupSettings with test credentials (no endpoint, so moto handles S3)."""
    return BackupSettings(
        storage_endpoint=None,
        access_key='test_access_key',
        secret_key='test_secret_key',
        bucket=BUCKET,
        db_host='db.example.com',
        db_name='smultron',
        db_user='backup',
        db_pass='s3cret-pass',
        db_port='5432'
    )


@pytest.fixture
def backup_env():
    """Complete environment for BackupSettings.from_env()."""
    return {
        'MINIO_ENDPOINT': 'http://minio:9000',
        'MINIO_ACCESS_KEY': 'minio_access',
        'MINIO_SECRET_KEY': 'minio_secret',
        'BACKUP_BUCKET': 'smultronbyn-backups',
        'DB_HOST': 'db.internal',
        'DB_NAME': 'smultron',
        'DB_USER': 'backup',
        'DB_PASS': 'hunter2',
    }


@pytest.fixture
def config(tmp_path):
    """Configuration dict pointing at temporary directories."""
    return {
        'TEMP_DIR': str(tmp_path / 'temp'),
        'LOG_DIR': str(tmp_path / 'logs'),
        'SCHEDULER_TIMEZONE': 'UTC',
        'BACKUP_CRON': '0 3 * * *',
        'RUN_NOW': False,
        'DAILY_RETENTION': 7,
        'WEEKLY_RETENTION': 4,
        'WEEKLY_PROMOTION_WEEKDAY': 0,
        'DEBUG': False,
    }


@pytest.fixture
def mock_s3():
    """
    Mock S3 service using moto.

    Creates the test bucket in us-east-1 and yields the boto3 resource.
    """
    with mock_aws():
        s3 = boto3.resource('s3', region_name='us-east-1')
        s3.create_bucket(Bucket=BUCKET)
        yield s3


@pytest.fixture
def s3_storage(mock_s3, settings):
    """S3Storage bound to the moto bucket."""
    return S3Storage.from_settings(settings)


@pytest.fixture
def bucket_keys(mock_s3):
    """Return a function listing all keys currently in the test bucket."""
    def _keys(prefix=''):
        return sorted(obj.key for obj in mock_s3.Bucket(BUCKET).objects.filter(Prefix=prefix))
    return _keys


@pytest.fixture
def fake_dump():
    return FakeDumpProvider()


@pytest.fixture
def failing_dump():
    return FakeDumpProvider(fail=True)


@pytest.fixture
def mock_storage():
    """MagicMock storage with an empty bucket listing."""
    storage = MagicMock()
    storage.upload.side_effect = lambda local_path, key: key
    storage.list_objects.return_value = []
    return storage


@pytest.fixture
def monday():
    """2024-06-03 03:00, a Monday."""
    return datetime(2024, 6, 3, 3, 0, 0)


@pytest.fixture
def tuesday():
    """2024-06-04 03:00, a Tuesday."""
    return datetime(2024, 6, 4, 3, 0, 0)


@pytest.fixture(autouse=True)
def reset_scheduler_state():
    """Clear pgvault.scheduler globals and any pending shutdown request."""
    from pgvault import scheduler as scheduler_module

    def _clear():
        scheduler_module.scheduler = None
        scheduler_module.backup_config = None
        scheduler_module.backup_settings = None
        scheduler_module._exit_code = 0
        scheduler_module._shutdown_event.clear()

    _clear()
    yield
    _clear()
