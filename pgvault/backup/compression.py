"""
Gzip compression of database dumps.

The dump is streamed in fixed-size chunks so memory use does not grow with
the size of the database.
"""

import gzip
import os
import shutil

from .errors import CompressionError

DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1MB


def gzip_file(source_path: str, output_path: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """
    Compress a file into a gzip stream.

    Args:
        source_path: Path of the uncompressed dump
        output_path: Path of the .gz file to create
        chunk_size: Number of bytes copied per read

    Returns:
        Path to the created gzip file

    Raises:
        CompressionError: If the source is missing or the stream fails
    """
    if not os.path.isfile(source_path):
        raise CompressionError(f"Source file not found: {source_path}")

    try:
        with open(source_path, 'rb') as src, gzip.open(output_path, 'wb') as dst:
            shutil.copyfileobj(src, dst, chunk_size)
        return output_path
    except OSError as e:
        # Clean up partial archive on failure
        if os.path.exists(output_path):
            try:
                os.remove(output_path)
            except OSError:
                pass
        raise CompressionError(f"Failed to compress {source_path}: {e}") from e


def get_archive_size(archive_path: str) -> int:
    """
    Get the size of an archive file in bytes.

    Raises:
        CompressionError: If file doesn't exist or cannot be accessed
    """
    try:
        return os.path.getsize(archive_path)
    except FileNotFoundError as e:
        raise CompressionError(f"Archive not found: {archive_path}") from e
    except OSError as e:
        raise CompressionError(f"Failed to get archive size: {e}") from e
