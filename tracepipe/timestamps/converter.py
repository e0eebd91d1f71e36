"""
TracePipe Timestamp Reconciler

Builds the single TimestampConverter shared by every trace of a batch. The
converter maps monotonic (elapsed) nanoseconds onto real UTC time and
carries the device's UTC offset for display.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tracepipe.ingest.bugreport import TimezoneInfo
from tracepipe.traces.trace import Trace

logger = logging.getLogger(__name__)

NS_PER_S = 1_000_000_000
NS_PER_MINUTE = 60 * NS_PER_S


@dataclass(frozen=True)
class Timestamp:
    """
    Absolute timestamp.

    value_ns is real UTC time since the epoch; local_ns adds the UTC offset
    the batch was recorded with.
    """

    value_ns: int
    utc_offset_ns: int = 0

    @property
    def local_ns(self) -> int:
        return self.value_ns + self.utc_offset_ns

    def format(self) -> str:
        """ISO-8601 local time with nanosecond precision."""
        seconds, nanos = divmod(self.local_ns, NS_PER_S)
        dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
        return f"{dt.strftime('%Y-%m-%dT%H:%M:%S')}.{nanos:09d}"

    def __str__(self) -> str:
        return self.format()


def format_utc_offset(offset_ns: int) -> str:
    """Render an offset as UTC+HH:MM / UTC-HH:MM."""
    sign = "-" if offset_ns < 0 else "+"
    minutes = abs(offset_ns) // NS_PER_MINUTE
    hours, minutes = divmod(minutes, 60)
    return f"UTC{sign}{hours:02d}:{minutes:02d}"


def resolve_utc_offset_ns(timezone_info: TimezoneInfo, real_ns: Optional[int]) -> int:
    """
    UTC offset of a named zone at a given real instant.
    Unknown zones resolve to zero.
    """
    try:
        zone = ZoneInfo(timezone_info.timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.warning(f"Unknown timezone {timezone_info.timezone!r}: {e}")
        return 0

    if real_ns is None:
        instant = datetime.now(tz=zone)
    else:
        instant = datetime.fromtimestamp(real_ns / NS_PER_S, tz=zone)

    offset = instant.utcoffset() or timedelta(0)
    return int(offset.total_seconds()) * NS_PER_S


@dataclass(frozen=True)
class TimestampConverter:
    """
    Immutable monotonic-to-real mapping for one batch.

    real = real_epoch_anchor_ns + (monotonic - monotonic_anchor_ns)
    """

    utc_offset_ns: int = 0
    real_epoch_anchor_ns: int = 0
    monotonic_anchor_ns: int = 0
    timezone_info: Optional[TimezoneInfo] = None
    has_real_time: bool = False

    @property
    def utc_offset_minutes(self) -> int:
        return int(self.utc_offset_ns // NS_PER_MINUTE)

    def get_utc_offset(self) -> str:
        return format_utc_offset(self.utc_offset_ns)

    def make_timestamp_from_monotonic_ns(self, value_ns: int) -> Timestamp:
        real_ns = self.real_epoch_anchor_ns + (int(value_ns) - self.monotonic_anchor_ns)
        return Timestamp(real_ns, self.utc_offset_ns)

    def make_timestamp_from_real_ns(self, value_ns: int) -> Timestamp:
        return Timestamp(int(value_ns), self.utc_offset_ns)

    def to_real_ns(self, value_ns: int) -> int:
        return self.make_timestamp_from_monotonic_ns(value_ns).value_ns


class TimestampReconciler:
    """
    Collects timing metadata from a batch and produces one converter.

    The first trace carrying a real-to-monotonic offset wins. The first
    timezone source wins; bugreport timezone is fed before any trace.
    """

    def __init__(self):
        self._timezone_info: Optional[TimezoneInfo] = None
        self._real_to_monotonic_ns: Optional[int] = None
        self._reference_monotonic_ns: Optional[int] = None

    @property
    def timezone_info(self) -> Optional[TimezoneInfo]:
        return self._timezone_info

    def set_timezone_info(self, timezone_info: Optional[TimezoneInfo]) -> None:
        if timezone_info is None or self._timezone_info is not None:
            return
        self._timezone_info = timezone_info

    def add_trace(self, trace: Trace) -> None:
        offset = trace.real_to_monotonic_offset_ns
        if offset is not None and self._real_to_monotonic_ns is None:
            self._real_to_monotonic_ns = offset
            self._reference_monotonic_ns = trace.first_timestamp_ns
            logger.debug(
                f"Real-to-monotonic offset {offset} ns taken from {trace.primary_filename}"
            )

    def build(self) -> TimestampConverter:
        real_anchor = self._real_to_monotonic_ns or 0
        has_real_time = self._real_to_monotonic_ns is not None

        utc_offset_ns = 0
        if self._timezone_info is not None:
            reference_real_ns = None
            if has_real_time:
                reference_real_ns = real_anchor + (self._reference_monotonic_ns or 0)
            utc_offset_ns = resolve_utc_offset_ns(self._timezone_info, reference_real_ns)

        converter = TimestampConverter(
            utc_offset_ns=utc_offset_ns,
            real_epoch_anchor_ns=real_anchor,
            monotonic_anchor_ns=0,
            timezone_info=self._timezone_info,
            has_real_time=has_real_time,
        )
        logger.info(f"Timestamp converter ready ({converter.get_utc_offset()})")
        return converter
