"""
TracePipe Timestamps - batch-wide monotonic to real time conversion.
"""

from tracepipe.timestamps.converter import (
    Timestamp,
    TimestampConverter,
    TimestampReconciler,
    format_utc_offset,
    resolve_utc_offset_ns,
)

__all__ = [
    "Timestamp",
    "TimestampConverter",
    "TimestampReconciler",
    "format_utc_offset",
    "resolve_utc_offset_ns",
]
