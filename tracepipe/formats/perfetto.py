"""
TracePipe Perfetto Traces

A perfetto trace is a stream of TracePacket messages. One file may carry
several winscope categories; each category present becomes its own trace.
A container with none of them is reported with every missing category.
"""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Dict, List, Optional, Sequence, Tuple

from tracepipe.core.schema import RawFileEntry, TraceType
from tracepipe.core.user_warnings import InvalidPerfettoTrace, PipelineWarning
from tracepipe.formats.base import DecodeFailure, DecodeResult, FormatHandler
from tracepipe.formats.schema import (
    CLOCK_BOOTTIME,
    CLOCK_REALTIME,
    PerfettoTrace,
    TracePacket,
)
from tracepipe.traces.trace import RawLoaded, SourceKind, Trace, TraceEntry

logger = logging.getLogger(__name__)

PERFETTO_EXTENSIONS = (".perfetto-trace", ".perfetto", ".pftrace")
PACKET_TAG = 0x0A  # field 1, length delimited
# varint, fixed64, length delimited, fixed32
PACKET_WIRE_TYPES = frozenset((0, 1, 2, 5))
MAX_FIELD_NUMBER = 2**29 - 1


@dataclass(frozen=True)
class PerfettoCategory:
    """A winscope data source inside a perfetto trace."""

    label: str
    trace_type: TraceType
    path: Tuple[str, ...]
    noun: str = "entries"

    @property
    def missing_reason(self) -> str:
        return f"Perfetto trace has no {self.label} {self.noun}"

    def payload(self, packet) -> Optional[bytes]:
        message = packet
        for name in self.path[:-1]:
            if not message.HasField(name):
                return None
            message = getattr(message, name)
        if not message.HasField(self.path[-1]):
            return None
        return getattr(message, self.path[-1])


# Order is the order missing categories are reported in
PERFETTO_CATEGORIES: List[PerfettoCategory] = [
    PerfettoCategory("IME Clients", TraceType.INPUT_METHOD_CLIENTS,
                     ("winscope_extensions", "inputmethod_clients")),
    PerfettoCategory("IME system_server", TraceType.INPUT_METHOD_MANAGER_SERVICE,
                     ("winscope_extensions", "inputmethod_manager_service")),
    PerfettoCategory("IME Service", TraceType.INPUT_METHOD_SERVICE,
                     ("winscope_extensions", "inputmethod_service")),
    PerfettoCategory("ProtoLog", TraceType.PROTO_LOG, ("protolog_message",)),
    PerfettoCategory("Surface Flinger", TraceType.SURFACE_FLINGER,
                     ("surfaceflinger_layers_snapshot",)),
    PerfettoCategory("Transactions", TraceType.TRANSACTIONS, ("surfaceflinger_transactions",)),
    PerfettoCategory("Transitions", TraceType.TRANSITION, ("shell_transition",)),
    PerfettoCategory("ViewCapture", TraceType.VIEW_CAPTURE,
                     ("winscope_extensions", "viewcapture"), noun="windows"),
    PerfettoCategory("Motion Events", TraceType.INPUT_MOTION_EVENT,
                     ("android_input_event", "motion_event")),
    PerfettoCategory("Key Events", TraceType.INPUT_KEY_EVENT,
                     ("android_input_event", "key_event")),
]


def _read_varint(buf: bytes, pos: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    while pos < len(buf) and shift < 64:
        byte = buf[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
    raise ValueError("truncated varint")


def looks_like_packet_stream(header: bytes) -> bool:
    """First bytes are a length-delimited field 1 opening with a well-formed field tag."""
    if not header or header[0] != PACKET_TAG:
        return False
    try:
        length, pos = _read_varint(header, 1)
        tag, _ = _read_varint(header, pos)
    except ValueError:
        return False
    field_number, wire_type = tag >> 3, tag & 0x07
    return (
        length > 0
        and 1 <= field_number <= MAX_FIELD_NUMBER
        and wire_type in PACKET_WIRE_TYPES
    )


def real_to_boottime_offset(snapshot) -> Optional[int]:
    clocks = {clock.clock_id: clock.timestamp for clock in snapshot.clocks}
    if CLOCK_REALTIME in clocks and CLOCK_BOOTTIME in clocks:
        return clocks[CLOCK_REALTIME] - clocks[CLOCK_BOOTTIME]
    return None


def decode_packet_entry(category: PerfettoCategory, index: int, raw: bytes) -> TraceEntry:
    packet = TracePacket.FromString(raw)
    payload = category.payload(packet) or b""
    return TraceEntry(
        index=index,
        timestamp_ns=packet.timestamp,
        fields={
            "sequence_id": packet.trusted_packet_sequence_id,
            "payload_size": len(payload),
        },
    )


class PerfettoHandler(FormatHandler):
    """Splits a perfetto trace into one trace per winscope category."""

    name = "perfetto"

    def __init__(self, categories: Optional[Sequence[PerfettoCategory]] = None):
        self.categories = list(categories or PERFETTO_CATEGORIES)

    def sniff(self, header: bytes, filename: str) -> bool:
        if filename.lower().endswith(PERFETTO_EXTENSIONS):
            return True
        return looks_like_packet_stream(header)

    def decode(self, entry: RawFileEntry, original: RawFileEntry) -> DecodeResult:
        trace = PerfettoTrace.FromString(entry.data)

        offset: Optional[int] = None
        packets: Dict[TraceType, List[bytes]] = {}
        first_timestamps: Dict[TraceType, int] = {}

        for raw in trace.packet:
            packet = TracePacket.FromString(raw)
            if offset is None and packet.HasField("clock_snapshot"):
                offset = real_to_boottime_offset(packet.clock_snapshot)
            for category in self.categories:
                if category.payload(packet) is None:
                    continue
                packets.setdefault(category.trace_type, []).append(raw)
                first_timestamps.setdefault(category.trace_type, packet.timestamp)

        if not packets:
            return DecodeFailure(tuple(c.missing_reason for c in self.categories))

        traces = []
        for category in self.categories:
            raw_entries = packets.get(category.trace_type)
            if not raw_entries:
                continue
            state = RawLoaded(
                raw_entries=tuple(raw_entries),
                decoder=partial(decode_packet_entry, category),
                first_timestamp_ns=first_timestamps[category.trace_type],
                real_to_monotonic_offset_ns=offset,
            )
            traces.append(Trace(category.trace_type, [original], state, SourceKind.PERFETTO))

        logger.debug(
            f"{entry.name}: perfetto trace with {[t.type.display_name for t in traces]}"
        )
        return traces

    def failure_warning(self, filename: str, reasons: Sequence[str]) -> PipelineWarning:
        return InvalidPerfettoTrace(filename, tuple(reasons))
