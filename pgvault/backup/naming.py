"""
Naming rules for backup artifacts.

Local files:
    {temp_dir}/backup-{YYYY-MM-DD}.sql
    {temp_dir}/backup-{YYYY-MM-DD}.sql.gz

Object keys:
    daily/backup-{YYYY-MM-DD}.sql.gz
    weekly/backup-{YYYY}-W{nn}.sql.gz

The weekly number is ceil(day_of_month / 7), so it restarts at 01 every
month and runs from 01 to 05. It is not an ISO week number. Existing
buckets depend on this format, so keep it as is.
"""

import math
import os
from datetime import datetime
from typing import Tuple

DAILY_PREFIX = 'daily/'
WEEKLY_PREFIX = 'weekly/'
ARCHIVE_EXTENSION = '.sql.gz'
CONTENT_TYPE = 'application/gzip'

MONDAY = 0


def date_identifier(now: datetime) -> str:
    """Return the YYYY-MM-DD identifier for a run started at `now`."""
    return now.strftime('%Y-%m-%d')


def week_of_month(now: datetime) -> int:
    """
    Month-relative week number used in weekly keys.

    Args:
        now: Run timestamp

    Returns:
        ceil(day_of_month / 7), between 1 and 5
    """
    return math.ceil(now.day / 7)


def daily_key(now: datetime) -> str:
    return f"{DAILY_PREFIX}backup-{date_identifier(now)}{ARCHIVE_EXTENSION}"


def weekly_key(now: datetime) -> str:
    return f"{WEEKLY_PREFIX}backup-{now.year}-W{week_of_month(now):02d}{ARCHIVE_EXTENSION}"


def is_weekly_promotion_day(now: datetime, promotion_weekday: int = MONDAY) -> bool:
    """
    Check whether a run on `now` should also be stored in the weekly tier.

    Args:
        now: Run timestamp
        promotion_weekday: Weekday as returned by datetime.weekday() (Monday is 0)

    Returns:
        True if the run date falls on the promotion weekday
    """
    return now.weekday() == promotion_weekday


def local_artifact_paths(temp_dir: str, date_id: str) -> Tuple[str, str]:
    """
    Build the paths of the uncompressed dump and the gzip artifact.

    Args:
        temp_dir: Directory holding the temporary files
        date_id: Date identifier of the run

    Returns:
        Tuple of (dump_path, archive_path)
    """
    dump_path = os.path.join(temp_dir, f"backup-{date_id}.sql")
    return dump_path, f"{dump_path}.gz"
