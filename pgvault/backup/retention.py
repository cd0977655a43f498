"""
Count-based retention for backup tiers.

Each tier (daily/, weekly/) keeps its N most recent objects. Keys embed a
fixed-width date, so ascending key order is chronological order and the
oldest backups are the first keys in the sorted listing.
"""

import logging
from typing import List

from .errors import RetentionError, StorageError

logger = logging.getLogger(__name__)


def plan_deletions(keys: List[str], keep_count: int) -> List[str]:
    """
    Select the keys to delete so that at most keep_count remain.

    Args:
        keys: Object keys under one prefix, in any order
        keep_count: Number of most recent keys to keep

    Returns:
        The oldest max(0, len(keys) - keep_count) keys, ascending
    """
    ordered = sorted(keys)
    return ordered[:max(0, len(ordered) - keep_count)]


class RetentionManager:
    """
    Enforces "keep only the N most recent objects under a prefix".

    Deletions are fail-fast: the first storage error stops the cleanup and
    is raised as RetentionError.
    """

    def __init__(self, storage):
        """
        Initialize retention manager.

        Args:
            storage: S3Storage (or compatible) used to list and delete objects
        """
        self.storage = storage

    def cleanup(self, prefix: str, keep_count: int) -> List[str]:
        """
        Delete the oldest objects under prefix beyond keep_count.

        Args:
            prefix: Tier prefix, e.g. 'daily/'
            keep_count: Number of objects to retain (>= 0)

        Returns:
            Keys that were deleted, oldest first

        Raises:
            ValueError: If prefix is empty or keep_count is negative
            RetentionError: If listing or deleting fails
        """
        if not prefix:
            raise ValueError("Retention prefix must not be empty")
        if keep_count < 0:
            raise ValueError(f"keep_count must be >= 0, got {keep_count}")

        try:
            objects = self.storage.list_objects(prefix)
        except StorageError as e:
            raise RetentionError(f"Failed to list backups under {prefix}: {e}") from e

        to_delete = plan_deletions([obj['Key'] for obj in objects], keep_count)
        logger.info(
            "Retention %s: %d objects, keeping %d, deleting %d",
            prefix, len(objects), keep_count, len(to_delete)
        )

        deleted = []
        for key in to_delete:
            try:
                self.storage.delete(key)
            except StorageError as e:
                raise RetentionError(f"Failed to delete old backup {key}: {e}") from e
            deleted.append(key)
            logger.info("Deleted old backup: %s", key)

        return deleted
