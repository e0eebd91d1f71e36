"""
TracePipe Traces - trace model, collection and conflict resolution.
"""

from tracepipe.traces.trace import (
    Built,
    BuildFailed,
    RawLoaded,
    SourceKind,
    Trace,
    TraceEntry,
)
from tracepipe.traces.collection import TRACE_TYPES_WITHOUT_VISUALIZATION, TraceCollection
from tracepipe.traces.conflict import ConflictResolver, slot_of

__all__ = [
    "Built",
    "BuildFailed",
    "RawLoaded",
    "SourceKind",
    "Trace",
    "TraceEntry",
    "TRACE_TYPES_WITHOUT_VISUALIZATION",
    "TraceCollection",
    "ConflictResolver",
    "slot_of",
]
