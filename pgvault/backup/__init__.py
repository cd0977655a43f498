"""
Backup module for pgvault.

This module handles the core backup functionality including:
- Database dump (pg_dump)
- Gzip compression
- Storage (S3-compatible object store)
- Execution orchestration
- Count-based retention per tier
"""

from .errors import (
    BackupError,
    DumpError,
    CompressionError,
    StorageError,
    UploadError,
    RetentionError,
)
from .executor import BackupExecutor, BackupResult, execute_backup
from .dump import DumpProvider, PgDumpProvider
from .compression import gzip_file
from .storage import S3Storage
from .retention import RetentionManager, plan_deletions

__all__ = [
    'BackupError',
    'DumpError',
    'CompressionError',
    'StorageError',
    'UploadError',
    'RetentionError',
    'BackupExecutor',
    'BackupResult',
    'execute_backup',
    'DumpProvider',
    'PgDumpProvider',
    'gzip_file',
    'S3Storage',
    'RetentionManager',
    'plan_deletions',
]
