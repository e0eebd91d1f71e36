"""
TracePipe Conflict Resolver

Enforces one trace per slot. A slot is usually a single TraceType; screen
captures share the SCREEN_RECORDING slot so a screenshot and a recording
never coexist.
"""

import logging
from typing import Dict, List, Optional, Tuple

from tracepipe.core.schema import TraceType
from tracepipe.core.user_warnings import TraceOverridden
from tracepipe.traces.collection import TraceCollection
from tracepipe.traces.trace import SourceKind, Trace

logger = logging.getLogger(__name__)

# Types that compete for another type's slot
SLOT_OF: Dict[TraceType, TraceType] = {
    TraceType.SCREENSHOT: TraceType.SCREEN_RECORDING,
}

# Higher wins within a slot
TYPE_PRIORITY: Dict[TraceType, int] = {
    TraceType.SCREEN_RECORDING: 1,
    TraceType.SCREENSHOT: 0,
}

SOURCE_PRIORITY: Dict[SourceKind, int] = {
    SourceKind.PERFETTO: 1,
    SourceKind.LEGACY: 0,
    SourceKind.MEDIA: 0,
}


def slot_of(trace_type: TraceType) -> TraceType:
    return SLOT_OF.get(trace_type, trace_type)


def _slot_members(slot: TraceType) -> List[TraceType]:
    return [slot] + [t for t, s in SLOT_OF.items() if s == slot]


def priority(trace: Trace) -> Tuple[int, int]:
    return (
        TYPE_PRIORITY.get(trace.type, 0),
        SOURCE_PRIORITY.get(trace.source_kind, 0),
    )


class ConflictResolver:
    """
    Installs candidate traces into a collection, one at a time.

    Must be driven from a single thread; callers feed candidates in input
    file order so the outcome is deterministic.
    """

    def __init__(self, collection: TraceCollection):
        self.collection = collection

    def incumbent_for(self, trace_type: TraceType) -> Optional[Trace]:
        for member in _slot_members(slot_of(trace_type)):
            trace = self.collection.get(member)
            if trace is not None:
                return trace
        return None

    def offer(self, candidate: Trace) -> Optional[TraceOverridden]:
        """
        Install candidate unless an incumbent outranks it.

        Returns the TraceOverridden warning for whichever trace lost, or
        None if the slot was free.
        """
        incumbent = self.incumbent_for(candidate.type)
        if incumbent is None:
            self.collection.add(candidate)
            return None

        slot = slot_of(candidate.type)
        if self._wins(candidate, incumbent):
            self.collection.replace(incumbent, candidate)
            loser = incumbent
        else:
            loser = candidate

        warning = TraceOverridden(loser.primary_filename, slot)
        logger.warning(warning.message())
        return warning

    @staticmethod
    def _wins(candidate: Trace, incumbent: Trace) -> bool:
        cand_rank, inc_rank = priority(candidate), priority(incumbent)
        if cand_rank != inc_rank:
            return cand_rank > inc_rank

        # Same rank: keep the trace with the most recent data
        cand_ts, inc_ts = candidate.first_timestamp_ns, incumbent.first_timestamp_ns
        if cand_ts is None or inc_ts is None:
            return False
        return cand_ts > inc_ts
