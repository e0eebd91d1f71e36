"""
TracePipe Legacy Proto Traces

Magic-number framed protobuf trace files written by the platform services
before perfetto (WindowManager, SurfaceFlinger, IME, ...). The file starts
with field 1 (fixed64 magic), so the first nine bytes are 0x09 followed by
the 8-character magic string.
"""

import logging
from typing import Dict, Optional

from tracepipe.core.schema import RawFileEntry, TraceType
from tracepipe.formats.base import DecodeFailure, DecodeResult, FormatHandler
from tracepipe.formats.schema import LegacyTraceEntry, LegacyTraceFile, magic_number
from tracepipe.traces.trace import RawLoaded, SourceKind, Trace, TraceEntry

logger = logging.getLogger(__name__)

MAGIC_TAG = 0x09  # field 1, wire type fixed64

LEGACY_MAGICS: Dict[bytes, TraceType] = {
    b"WINTRACE": TraceType.WINDOW_MANAGER,
    b"LYRTRACE": TraceType.SURFACE_FLINGER,
    b"TNXTRACE": TraceType.TRANSACTIONS,
    b"TRNTRACE": TraceType.TRANSITION,
    b"WMSTRACE": TraceType.SHELL_TRANSITION,
    b"PROTOLOG": TraceType.PROTO_LOG,
    b"IMCTRACE": TraceType.INPUT_METHOD_CLIENTS,
    b"IMMTRACE": TraceType.INPUT_METHOD_MANAGER_SERVICE,
    b"IMSTRACE": TraceType.INPUT_METHOD_SERVICE,
    b"VWCTRACE": TraceType.VIEW_CAPTURE,
}


def magic_of(header: bytes) -> Optional[bytes]:
    if len(header) < 9 or header[0] != MAGIC_TAG:
        return None
    magic = bytes(header[1:9])
    return magic if magic in LEGACY_MAGICS else None


def decode_legacy_entry(index: int, raw: bytes) -> TraceEntry:
    message = LegacyTraceEntry.FromString(raw)
    return TraceEntry(
        index=index,
        timestamp_ns=message.elapsed_realtime_nanos,
        fields={"where": message.where, "size": len(raw)},
    )


class LegacyProtoHandler(FormatHandler):
    """Handles every magic-number framed trace type."""

    name = "legacy_proto"

    def sniff(self, header: bytes, filename: str) -> bool:
        return magic_of(header) is not None

    def decode(self, entry: RawFileEntry, original: RawFileEntry) -> DecodeResult:
        magic = magic_of(entry.header())
        if magic is None:
            return DecodeFailure((f"{entry.name}: missing trace magic number",))
        trace_type = LEGACY_MAGICS[magic]

        message = LegacyTraceFile.FromString(entry.data)
        if message.magic_number != magic_number(magic):
            return DecodeFailure((f"{entry.name}: magic number mismatch",))

        raw_entries = tuple(message.entry)
        first_timestamp = None
        if raw_entries:
            first_timestamp = LegacyTraceEntry.FromString(raw_entries[0]).elapsed_realtime_nanos

        offset = None
        if message.HasField("real_to_elapsed_time_offset_nanos"):
            offset = message.real_to_elapsed_time_offset_nanos

        logger.debug(
            f"{entry.name}: {trace_type.display_name} trace, {len(raw_entries)} entries"
        )
        state = RawLoaded(
            raw_entries=raw_entries,
            decoder=decode_legacy_entry,
            first_timestamp_ns=first_timestamp,
            real_to_monotonic_offset_ns=offset,
        )
        return [Trace(trace_type, [original], state, SourceKind.LEGACY)]
