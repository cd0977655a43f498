"""
Exceptions raised by the backup pipeline.

Every step of a run raises a subclass of BackupError so the executor can
treat dump, compression, upload and retention failures uniformly.
"""


class BackupError(Exception):
    """Base class for backup run failures."""
    pass


class DumpError(BackupError):
    """Raised when the database dump fails."""
    pass


class CompressionError(BackupError):
    """Raised when compressing the dump fails."""
    pass


class StorageError(BackupError):
    """Raised when an object storage operation fails."""
    pass


class UploadError(StorageError):
    """Raised when storing an artifact in the bucket fails."""
    pass


class RetentionError(BackupError):
    """Raised when listing or deleting old backups fails."""
    pass
