"""
TracePipe Wire Schemas

Protobuf framing of the trace containers, built at import time from a
FileDescriptorProto. Only the framing and per-entry timing fields are
declared; payload fields stay opaque (kept as unknown fields or bytes).
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "tracepipe.framing"

_F = descriptor_pb2.FieldDescriptorProto

# Builtin perfetto clock ids
CLOCK_REALTIME = 1
CLOCK_BOOTTIME = 6


def _add_field(message, name, number, field_type, label=_F.LABEL_OPTIONAL, type_name=None):
    f = message.field.add()
    f.name = name
    f.number = number
    f.type = field_type
    f.label = label
    if type_name:
        f.type_name = f".{PACKAGE}.{type_name}"
    return f


def _file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto()
    fdp.name = "tracepipe/framing.proto"
    fdp.package = PACKAGE
    fdp.syntax = "proto2"

    # Magic-number framed trace files (WindowManager, SurfaceFlinger, ...)
    legacy = fdp.message_type.add()
    legacy.name = "LegacyTraceFile"
    _add_field(legacy, "magic_number", 1, _F.TYPE_FIXED64)
    _add_field(legacy, "entry", 2, _F.TYPE_BYTES, _F.LABEL_REPEATED)
    _add_field(legacy, "real_to_elapsed_time_offset_nanos", 3, _F.TYPE_FIXED64)

    entry = fdp.message_type.add()
    entry.name = "LegacyTraceEntry"
    _add_field(entry, "elapsed_realtime_nanos", 1, _F.TYPE_FIXED64)
    _add_field(entry, "where", 2, _F.TYPE_STRING)

    # Perfetto
    trace = fdp.message_type.add()
    trace.name = "Trace"
    _add_field(trace, "packet", 1, _F.TYPE_BYTES, _F.LABEL_REPEATED)

    clock = fdp.message_type.add()
    clock.name = "Clock"
    _add_field(clock, "clock_id", 1, _F.TYPE_UINT32)
    _add_field(clock, "timestamp", 2, _F.TYPE_UINT64)

    snapshot = fdp.message_type.add()
    snapshot.name = "ClockSnapshot"
    _add_field(snapshot, "clocks", 1, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, "Clock")

    extensions = fdp.message_type.add()
    extensions.name = "WinscopeExtensions"
    _add_field(extensions, "inputmethod_clients", 1, _F.TYPE_BYTES)
    _add_field(extensions, "inputmethod_service", 2, _F.TYPE_BYTES)
    _add_field(extensions, "inputmethod_manager_service", 3, _F.TYPE_BYTES)
    _add_field(extensions, "viewcapture", 4, _F.TYPE_BYTES)

    input_event = fdp.message_type.add()
    input_event.name = "AndroidInputEvent"
    _add_field(input_event, "motion_event", 1, _F.TYPE_BYTES)
    _add_field(input_event, "key_event", 2, _F.TYPE_BYTES)

    packet = fdp.message_type.add()
    packet.name = "TracePacket"
    _add_field(packet, "clock_snapshot", 6, _F.TYPE_MESSAGE, type_name="ClockSnapshot")
    _add_field(packet, "timestamp", 8, _F.TYPE_UINT64)
    _add_field(packet, "trusted_packet_sequence_id", 10, _F.TYPE_UINT32)
    _add_field(packet, "surfaceflinger_layers_snapshot", 93, _F.TYPE_BYTES)
    _add_field(packet, "surfaceflinger_transactions", 94, _F.TYPE_BYTES)
    _add_field(packet, "shell_transition", 96, _F.TYPE_BYTES)
    _add_field(packet, "protolog_message", 104, _F.TYPE_BYTES)
    _add_field(packet, "winscope_extensions", 112, _F.TYPE_MESSAGE, type_name="WinscopeExtensions")
    _add_field(packet, "android_input_event", 120, _F.TYPE_MESSAGE, type_name="AndroidInputEvent")

    return fdp


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_file_descriptor().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


LegacyTraceFile = _message_class("LegacyTraceFile")
LegacyTraceEntry = _message_class("LegacyTraceEntry")
PerfettoTrace = _message_class("Trace")
TracePacket = _message_class("TracePacket")
ClockSnapshot = _message_class("ClockSnapshot")
WinscopeExtensions = _message_class("WinscopeExtensions")
AndroidInputEvent = _message_class("AndroidInputEvent")


def magic_number(tag: bytes) -> int:
    """The fixed64 value of an 8-character magic string."""
    if len(tag) != 8:
        raise ValueError(f"magic must be 8 bytes, got {tag!r}")
    return int.from_bytes(tag, "little")
