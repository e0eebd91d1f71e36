"""
TracePipe Trace Model

A Trace moves through two owned states: RawLoaded (bytes validated and bound
to a TraceType) and Built (entries decoded). A build that fails leaves the
trace in BuildFailed instead of a half-initialised Built state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from tracepipe.core.errors import TraceBuildError
from tracepipe.core.schema import RawFileEntry, TraceType

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class SourceKind(Enum):
    """Container family a trace was decoded from."""

    LEGACY = "legacy"
    PERFETTO = "perfetto"
    MEDIA = "media"


@dataclass(frozen=True)
class TraceEntry:
    """A single decoded record. timestamp_ns is on the monotonic clock."""

    index: int
    timestamp_ns: int
    fields: Dict[str, Any] = field(default_factory=dict)


EntryDecoder = Callable[[int, bytes], TraceEntry]


@dataclass(frozen=True)
class RawLoaded:
    """Validated, not yet decoded."""

    raw_entries: Tuple[bytes, ...]
    decoder: EntryDecoder
    first_timestamp_ns: Optional[int] = None
    real_to_monotonic_offset_ns: Optional[int] = None


@dataclass(frozen=True)
class Built:
    entries: Tuple[TraceEntry, ...]
    timestamps: np.ndarray
    real_to_monotonic_offset_ns: Optional[int] = None


@dataclass(frozen=True)
class BuildFailed:
    reason: str
    real_to_monotonic_offset_ns: Optional[int] = None


TraceState = Union[RawLoaded, Built, BuildFailed]


class Trace:
    """
    Decoded trace of one TraceType, owned by a TraceCollection.

    source_files are the original (pre-decompression) entries the trace was
    read from; they are what gets re-exported.
    """

    def __init__(
        self,
        trace_type: TraceType,
        source_files: Sequence[RawFileEntry],
        state: RawLoaded,
        source_kind: SourceKind = SourceKind.LEGACY,
        content: Optional[bytes] = None,
    ):
        self.type = trace_type
        self.source_files: Tuple[RawFileEntry, ...] = tuple(source_files)
        self.source_kind = source_kind
        # Decoded media bytes (screen recordings, screenshots)
        self.content = content
        self._state: TraceState = state

    @property
    def state(self) -> TraceState:
        return self._state

    @property
    def is_built(self) -> bool:
        return isinstance(self._state, Built)

    @property
    def is_loaded(self) -> bool:
        return isinstance(self._state, RawLoaded)

    @property
    def descriptors(self) -> List[str]:
        """Names of the files this trace came from."""
        return [f.name for f in self.source_files]

    @property
    def primary_filename(self) -> str:
        return self.source_files[0].name if self.source_files else self.type.display_name

    @property
    def real_to_monotonic_offset_ns(self) -> Optional[int]:
        return self._state.real_to_monotonic_offset_ns

    @property
    def first_timestamp_ns(self) -> Optional[int]:
        if isinstance(self._state, RawLoaded):
            return self._state.first_timestamp_ns
        if isinstance(self._state, Built) and len(self._state.timestamps):
            return int(self._state.timestamps[0])
        return None

    @property
    def entries(self) -> Tuple[TraceEntry, ...]:
        if not isinstance(self._state, Built):
            raise TraceBuildError(f"{self.type.display_name} trace is not built")
        return self._state.entries

    @property
    def timestamps(self) -> np.ndarray:
        if not isinstance(self._state, Built):
            raise TraceBuildError(f"{self.type.display_name} trace is not built")
        return self._state.timestamps

    def time_range_ns(self) -> Optional[Tuple[int, int]]:
        if not self.is_built or not len(self.timestamps):
            return None
        return int(self.timestamps.min()), int(self.timestamps.max())

    def build(self) -> Built:
        """
        Decode every raw entry.

        Idempotent on a built trace. On failure the trace moves to
        BuildFailed and TraceBuildError is raised.
        """
        state = self._state
        if isinstance(state, Built):
            return state
        if isinstance(state, BuildFailed):
            raise TraceBuildError(state.reason)

        try:
            entries = tuple(
                state.decoder(index, raw) for index, raw in enumerate(state.raw_entries)
            )
            for entry in entries:
                if not INT64_MIN <= entry.timestamp_ns <= INT64_MAX:
                    raise ValueError(
                        f"entry {entry.index} timestamp {entry.timestamp_ns} out of int64 range"
                    )
            timestamps = np.fromiter(
                (entry.timestamp_ns for entry in entries), dtype=np.int64, count=len(entries)
            )
        except Exception as e:
            reason = f"{self.primary_filename}: {type(e).__name__}: {e}"
            self._state = BuildFailed(reason, state.real_to_monotonic_offset_ns)
            raise TraceBuildError(reason) from e

        self._state = Built(entries, timestamps, state.real_to_monotonic_offset_ns)
        return self._state

    def __len__(self) -> int:
        state = self._state
        if isinstance(state, Built):
            return len(state.entries)
        if isinstance(state, RawLoaded):
            return len(state.raw_entries)
        return 0

    def __repr__(self) -> str:
        return (
            f"Trace({self.type.name}, files={self.descriptors}, "
            f"state={type(self._state).__name__}, entries={len(self)})"
        )
