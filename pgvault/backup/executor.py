"""
Backup executor - orchestrates one complete backup run.

Workflow:
1. Dump the database to {temp_dir}/backup-{date}.sql
2. Gzip the dump to {temp_dir}/backup-{date}.sql.gz
3. Upload to daily/backup-{date}.sql.gz
4. On the promotion weekday, upload to weekly/backup-{YYYY}-W{nn}.sql.gz
5. Enforce retention for daily/ and weekly/
6. Remove both temporary files (on every exit path)
"""

import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .compression import gzip_file, get_archive_size
from .dump import PgDumpProvider
from .naming import (
    DAILY_PREFIX,
    WEEKLY_PREFIX,
    MONDAY,
    date_identifier,
    daily_key,
    weekly_key,
    is_weekly_promotion_day,
    local_artifact_paths,
)
from .retention import RetentionManager
from .storage import S3Storage

logger = logging.getLogger(__name__)


class BackupResult:
    """Outcome of a single backup run."""

    def __init__(self, started_at: datetime):
        self.status = 'running'
        self.started_at = started_at
        self.completed_at = None
        self.date_id = date_identifier(started_at)
        self.daily_key = None
        self.weekly_key = None
        self.deleted_keys: Dict[str, List[str]] = {}
        self.file_size_bytes = None
        self.error_message = None
        self.logs: List[str] = []

    @property
    def success(self) -> bool:
        return self.status == 'success'

    def __repr__(self):
        return f"<BackupResult {self.date_id} status={self.status}>"


@contextmanager
def temporary_artifacts(temp_dir: str, date_id: str):
    """
    Reserve the local dump and archive paths for a run.

    Yields (dump_path, archive_path). Both files are removed when the block
    exits, whether it returns or raises.
    """
    dump_path, archive_path = local_artifact_paths(temp_dir, date_id)
    try:
        yield dump_path, archive_path
    finally:
        for path in (dump_path, archive_path):
            if os.path.exists(path):
                try:
                    os.remove(path)
                    logger.debug("Removed temporary file %s", path)
                except OSError as e:
                    logger.warning("Failed to remove temporary file %s: %s", path, e)


class BackupExecutor:
    """
    Runs the dump -> compress -> upload -> retention pipeline.
    """

    def __init__(
        self,
        settings,
        temp_dir: str = '/tmp',
        storage: Optional[S3Storage] = None,
        dump_provider=None,
        daily_retention: int = 7,
        weekly_retention: int = 4,
        promotion_weekday: int = MONDAY
    ):
        """
        Initialize backup executor.

        Args:
            settings: BackupSettings with database and storage parameters
            temp_dir: Directory for the temporary dump and archive
            storage: Storage handler; built from settings on first use if omitted
            dump_provider: DumpProvider; PgDumpProvider if omitted
            daily_retention: Number of daily backups to keep
            weekly_retention: Number of weekly backups to keep
            promotion_weekday: Weekday (Monday is 0) that also gets a weekly copy
        """
        self.settings = settings
        self.temp_dir = temp_dir
        self.storage = storage
        self.dump_provider = dump_provider or PgDumpProvider()
        self.daily_retention = daily_retention
        self.weekly_retention = weekly_retention
        self.promotion_weekday = promotion_weekday
        self.result = None

    @classmethod
    def from_config(cls, config: dict, settings, **kwargs) -> 'BackupExecutor':
        """Build an executor from a load_config() dict."""
        return cls(
            settings,
            temp_dir=config['TEMP_DIR'],
            daily_retention=config['DAILY_RETENTION'],
            weekly_retention=config['WEEKLY_RETENTION'],
            promotion_weekday=config['WEEKLY_PROMOTION_WEEKDAY'],
            **kwargs
        )

    def execute(self, now: Optional[datetime] = None) -> BackupResult:
        """
        Execute one backup run.

        Failures of any step are caught, logged and recorded on the result
        after the temporary files have been removed.

        Args:
            now: Run timestamp (default: current local time)

        Returns:
            BackupResult with status 'success' or 'failed'
        """
        if now is None:
            now = datetime.now()

        self.result = BackupResult(started_at=now)
        self._log(f"Starting backup {self.result.date_id}")

        try:
            with temporary_artifacts(self.temp_dir, self.result.date_id) as (dump_path, archive_path):
                self._execute_workflow(now, dump_path, archive_path)

            self.result.status = 'success'
            self._log("Backup completed successfully")

        except Exception as e:
            self.result.status = 'failed'
            self.result.error_message = str(e)
            self._log(f"BACKUP FAILED: {e}", level=logging.ERROR, exc_info=True)

        finally:
            self.result.completed_at = datetime.now()

        return self.result

    def _execute_workflow(self, now: datetime, dump_path: str, archive_path: str):
        """Execute the main backup workflow steps."""
        os.makedirs(self.temp_dir, exist_ok=True)

        # Step 1: Dump
        self._log(f"Dumping database {self.settings.db_name} to {dump_path}")
        self.dump_provider.dump(self.settings, dump_path)
        self._log("Dump complete")

        # Step 2: Compress
        gzip_file(dump_path, archive_path)
        self.result.file_size_bytes = get_archive_size(archive_path)
        self._log(
            f"Compressed: {os.path.basename(archive_path)} "
            f"({self.result.file_size_bytes / 1024 / 1024:.2f} MB)"
        )

        # Step 3: Daily upload
        storage = self._get_storage()
        self.result.daily_key = storage.upload(archive_path, daily_key(now))
        self._log(f"Uploaded: {self.result.daily_key}")

        # Step 4: Weekly promotion
        if is_weekly_promotion_day(now, self.promotion_weekday):
            self.result.weekly_key = storage.upload(archive_path, weekly_key(now))
            self._log(f"Weekly backup: {self.result.weekly_key}")

        # Step 5: Retention
        retention = RetentionManager(storage)
        for prefix, keep_count in (
            (DAILY_PREFIX, self.daily_retention),
            (WEEKLY_PREFIX, self.weekly_retention),
        ):
            deleted = retention.cleanup(prefix, keep_count)
            self.result.deleted_keys[prefix] = deleted
            self._log(f"Retention {prefix}: kept {keep_count}, deleted {len(deleted)}")

    def _get_storage(self) -> S3Storage:
        if self.storage is None:
            self.storage = S3Storage.from_settings(self.settings)
        return self.storage

    def _log(self, message: str, level: int = logging.INFO, exc_info: bool = False):
        """
        Log a message and keep a timestamped copy on the run result.

        Args:
            message: Log message
            level: logging level
            exc_info: Attach the active exception's traceback
        """
        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
        self.result.logs.append(f"[{timestamp}] {message}")
        logger.log(level, message, exc_info=exc_info)


def execute_backup(config: dict, settings, now: Optional[datetime] = None) -> BackupResult:
    """
    Run one backup with the given configuration.

    Args:
        config: Dict returned by load_config()
        settings: BackupSettings
        now: Run timestamp (default: current local time)

    Returns:
        BackupResult of the run
    """
    executor = BackupExecutor.from_config(config, settings)
    return executor.execute(now)
