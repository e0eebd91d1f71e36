"""
TracePipe Utilities
Common helpers for timing, byte sniffing, and filename handling.
"""

import gzip
import re
import time
import zlib
from pathlib import PurePosixPath
from typing import Optional
import logging

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
DOWNLOAD_FILENAME_REGEX = re.compile(r"^[A-Za-z0-9._-]+$")
_ILLEGAL_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def is_gzip(data: bytes) -> bool:
    return data[:2] == GZIP_MAGIC


def gunzip(data: bytes) -> Optional[bytes]:
    """
    Decompress a gzip blob.
    Returns None if the blob is not valid gzip.
    """
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        logger.debug(f"gzip decompression failed: {e}")
        return None


def strip_gz_suffix(name: str) -> str:
    return name[:-3] if name.lower().endswith(".gz") else name


def remove_extension(name: str) -> str:
    """Drop directories and every extension: 'a/b/SF.pb.gz' -> 'SF'."""
    base = PurePosixPath(name).name
    return base.split(".", 1)[0] if not base.startswith(".") else base


def sanitize_filename(name: str) -> str:
    """Replace every character that is not filesystem safe with '_'."""
    sanitized = _ILLEGAL_FILENAME_CHARS.sub("_", name)
    return sanitized or "_"


def format_size(num_bytes: int) -> str:
    """Format a byte count as a human-readable string."""
    size = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(size) < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} PB"


class Timer:
    """Context manager that logs how long a pipeline step took."""

    def __init__(self, name: str = ""):
        self.name = name
        self.duration_ns = 0
        self._start_ns = 0

    @property
    def duration_ms(self) -> float:
        return self.duration_ns / 1_000_000

    def __enter__(self) -> "Timer":
        self._start_ns = time.monotonic_ns()
        return self

    def __exit__(self, *args) -> None:
        self.duration_ns = time.monotonic_ns() - self._start_ns
        if self.name:
            logger.debug(f"{self.name}: {self.duration_ms:.2f} ms")
