"""
TracePipe Trace Collection

In-memory store of loaded traces keyed by TraceType. At most one trace per
type. Iteration follows insertion order so exports are deterministic.
"""

from typing import Callable, Dict, FrozenSet, Iterator, List, Optional, TypeVar

from tracepipe.core.schema import RawFileEntry, TraceType
from tracepipe.traces.trace import Trace

T = TypeVar("T")

# Types that only feed other views and have no visualization of their own
TRACE_TYPES_WITHOUT_VISUALIZATION: FrozenSet[TraceType] = frozenset(
    {
        TraceType.SHELL_TRANSITION,
        TraceType.INPUT_MOTION_EVENT,
        TraceType.INPUT_KEY_EVENT,
    }
)


class TraceCollection:
    """Mapping from TraceType to exactly one Trace."""

    def __init__(self):
        self._traces: Dict[TraceType, Trace] = {}

    def add(self, trace: Trace) -> None:
        if trace.type in self._traces:
            raise ValueError(
                f"Collection already holds a {trace.type.display_name} trace"
            )
        self._traces[trace.type] = trace

    def remove(self, trace: Trace) -> bool:
        """Remove trace if held. Returns whether anything was removed."""
        if self._traces.get(trace.type) is trace:
            del self._traces[trace.type]
            return True
        return False

    def replace(self, incumbent: Trace, trace: Trace) -> None:
        """Swap incumbent for trace, keeping the slot's position."""
        if self._traces.get(incumbent.type) is not incumbent:
            raise ValueError(f"{incumbent!r} is not held by this collection")
        if incumbent.type == trace.type:
            self._traces[trace.type] = trace
        else:
            del self._traces[incumbent.type]
            self.add(trace)

    def get(self, trace_type: TraceType) -> Optional[Trace]:
        return self._traces.get(trace_type)

    def size(self) -> int:
        return len(self._traces)

    def types(self) -> List[TraceType]:
        return list(self._traces)

    def for_each(self, callback: Callable[[Trace, TraceType], None]) -> None:
        for trace_type, trace in list(self._traces.items()):
            callback(trace, trace_type)

    def map(self, callback: Callable[[Trace, TraceType], T]) -> List[T]:
        return [callback(trace, trace_type) for trace_type, trace in self._traces.items()]

    def filter_without_visualization(self) -> List[Trace]:
        """Drop every trace that has no visualization. Returns the dropped traces."""
        dropped = [
            trace
            for trace_type, trace in self._traces.items()
            if trace_type in TRACE_TYPES_WITHOUT_VISUALIZATION
        ]
        for trace in dropped:
            del self._traces[trace.type]
        return dropped

    def source_files(self) -> List[RawFileEntry]:
        """Original files of every held trace, unique by name, in collection order."""
        seen = set()
        files = []
        for trace in self._traces.values():
            for f in trace.source_files:
                if f.name not in seen:
                    seen.add(f.name)
                    files.append(f)
        return files

    def clear(self) -> None:
        self._traces.clear()

    def __len__(self) -> int:
        return len(self._traces)

    def __iter__(self) -> Iterator[Trace]:
        return iter(list(self._traces.values()))

    def __contains__(self, trace_type: object) -> bool:
        return trace_type in self._traces

    def __repr__(self) -> str:
        return f"TraceCollection({[t.name for t in self._traces]})"
