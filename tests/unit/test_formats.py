"""
TracePipe Unit Tests - Format Handlers and Registry
"""

import pytest

from tracepipe.core.schema import RawFileEntry, TraceType
from tracepipe.core.user_warnings import InvalidPerfettoTrace, UnsupportedFileFormat
from tracepipe.formats.base import DecodeFailure, FormatHandler
from tracepipe.formats.legacy_proto import LEGACY_MAGICS, LegacyProtoHandler
from tracepipe.formats.media import (
    ScreenRecordingHandler,
    ScreenshotHandler,
    parse_recording_metadata,
)
from tracepipe.formats.perfetto import PERFETTO_CATEGORIES, PerfettoHandler
from tracepipe.formats.registry import ParserRegistry
from tracepipe.traces.trace import SourceKind, Trace


@pytest.fixture
def registry():
    return ParserRegistry()


class TestLegacyProto:
    """Tests for magic-number framed traces."""

    @pytest.mark.parametrize("magic, trace_type", sorted(LEGACY_MAGICS.items()))
    def test_every_magic_maps_to_its_type(self, registry, trace_bytes, magic, trace_type):
        result = registry.parse(RawFileEntry("trace.pb", trace_bytes.legacy(magic)))

        assert result.ok
        assert [t.type for t in result.traces] == [trace_type]

    def test_timing_metadata(self, registry, trace_bytes):
        data = trace_bytes.legacy(timestamps=(500, 900), real_to_elapsed_offset=42)

        trace = registry.parse(RawFileEntry("wm.winscope", data)).traces[0]

        assert trace.source_kind is SourceKind.LEGACY
        assert trace.first_timestamp_ns == 500
        assert trace.real_to_monotonic_offset_ns == 42
        assert len(trace) == 2

    def test_build_decodes_entries(self, registry, trace_bytes):
        trace = registry.parse(RawFileEntry("wm.winscope", trace_bytes.legacy())).traces[0]

        trace.build()

        assert trace.timestamps.tolist() == [1_000, 2_000, 3_000]
        assert trace.entries[1].fields["where"] == "entry1"

    def test_truncated_body_is_unsupported(self, registry, trace_bytes):
        data = trace_bytes.legacy()[:9] + b"\xff\xff\xff"

        result = registry.parse(RawFileEntry("wm.winscope", data))

        assert result.traces == []
        assert result.warning == UnsupportedFileFormat("wm.winscope")


class TestPerfetto:
    """Tests for perfetto splitting."""

    def test_one_trace_per_category(self, registry, trace_bytes):
        data = trace_bytes.perfetto(
            {
                "surfaceflinger_layers_snapshot": (100, 200),
                "protolog_message": (150,),
                "winscope_extensions.viewcapture": (300,),
            }
        )

        result = registry.parse(RawFileEntry("trace.perfetto-trace", data))

        assert result.handler == "perfetto"
        assert [t.type for t in result.traces] == [
            TraceType.PROTO_LOG,
            TraceType.SURFACE_FLINGER,
            TraceType.VIEW_CAPTURE,
        ]
        assert all(t.source_kind is SourceKind.PERFETTO for t in result.traces)
        sf = result.traces[1]
        assert len(sf) == 2
        assert sf.first_timestamp_ns == 100

    def test_clock_snapshot_offset(self, registry, trace_bytes):
        data = trace_bytes.perfetto(
            {"shell_transition": (1_500,)},
            realtime_ns=10_000_000,
            boottime_ns=1_000,
        )

        trace = registry.parse(RawFileEntry("t.perfetto-trace", data)).traces[0]

        assert trace.type is TraceType.TRANSITION
        assert trace.real_to_monotonic_offset_ns == 10_000_000 - 1_000

    def test_sniffed_without_extension(self, registry, trace_bytes):
        data = trace_bytes.perfetto({"android_input_event.key_event": (7,)})

        result = registry.parse(RawFileEntry("capture.bin", data))

        assert [t.type for t in result.traces] == [TraceType.INPUT_KEY_EVENT]

    def test_sniffed_when_first_packet_opens_with_undeclared_field(self, registry, trace_bytes):
        # packet { trace_config (33): "" } ahead of the real packets
        config_packet = b"\x0a\x03\x8a\x02\x00"
        data = config_packet + trace_bytes.perfetto({"protolog_message": (5,)})

        assert PerfettoHandler().sniff(data[:64], "capture.bin")
        result = registry.parse(RawFileEntry("capture.bin", data))

        assert [t.type for t in result.traces] == [TraceType.PROTO_LOG]

    def test_not_sniffed_with_invalid_wire_type(self):
        # field 1, wire type 7
        assert not PerfettoHandler().sniff(b"\x0a\x02\x0f\x00", "capture.bin")

    def test_empty_container_lists_every_missing_category(self, registry, trace_bytes):
        result = registry.parse(RawFileEntry("empty.perfetto-trace", trace_bytes.empty_perfetto()))

        assert isinstance(result.warning, InvalidPerfettoTrace)
        assert result.warning.reasons == tuple(c.missing_reason for c in PERFETTO_CATEGORIES)
        assert result.warning.reasons[0] == "Perfetto trace has no IME Clients entries"
        assert "Perfetto trace has no ViewCapture windows" in result.warning.reasons

    def test_garbage_with_perfetto_extension(self, registry):
        result = registry.parse(RawFileEntry("bad.perfetto-trace", b"\xff\xff\xff\xff"))

        assert isinstance(result.warning, InvalidPerfettoTrace)
        assert result.warning.reasons

    def test_build_packet_entries(self, registry, trace_bytes):
        data = trace_bytes.perfetto({"protolog_message": (30, 10, 20)})
        trace = registry.parse(RawFileEntry("t.perfetto-trace", data)).traces[0]

        trace.build()

        assert trace.timestamps.tolist() == [30, 10, 20]
        assert trace.time_range_ns() == (10, 30)


class TestMedia:
    """Tests for screen recordings and screenshots."""

    def test_recording_metadata_v2(self, trace_bytes):
        frames, offset = parse_recording_metadata(
            trace_bytes.screen_recording((5, 6, 7), real_to_monotonic_offset=99)
        )
        assert frames == [5, 6, 7]
        assert offset == 99

    def test_recording_metadata_v1(self, trace_bytes):
        frames, offset = parse_recording_metadata(
            trace_bytes.screen_recording((5, 6), version=1)
        )
        assert frames == [5, 6]
        assert offset is None

    def test_recording_trace(self, registry, screen_recording):
        trace = registry.parse(screen_recording).traces[0]

        assert trace.type is TraceType.SCREEN_RECORDING
        assert trace.content == screen_recording.data
        assert trace.first_timestamp_ns == 10_000

    def test_screenshot_trace(self, registry, screenshot):
        trace = registry.parse(screenshot).traces[0]
        trace.build()

        assert trace.type is TraceType.SCREENSHOT
        assert trace.content == screenshot.data
        assert trace.entries[0].fields == {"width": 1080, "height": 2400}

    def test_jpg_is_unsupported(self, registry, trace_bytes):
        result = registry.parse(RawFileEntry("photo.jpg", trace_bytes.jpg()))
        assert result.warning == UnsupportedFileFormat("photo.jpg")

    def test_sniffers(self, trace_bytes):
        assert ScreenRecordingHandler().sniff(trace_bytes.screen_recording()[:64], "x")
        assert ScreenshotHandler().sniff(trace_bytes.png()[:64], "x")
        assert not ScreenshotHandler().sniff(trace_bytes.jpg()[:64], "x.png")


class TestParserRegistry:
    """Tests for dispatch and gzip handling."""

    def test_default_order(self, registry):
        assert [h.name for h in registry.handlers] == [
            "legacy_proto",
            "perfetto",
            "screen_recording",
            "screenshot",
        ]

    def test_gzipped_trace_keeps_original_as_source(self, registry, trace_bytes):
        original = RawFileEntry("wm_trace.winscope.gz", trace_bytes.gz(trace_bytes.legacy()))

        result = registry.parse(original)

        assert result.ok
        assert result.traces[0].source_files == (original,)

    def test_broken_gzip_is_unsupported(self, registry):
        result = registry.parse(RawFileEntry("x.gz", b"\x1f\x8b\x08garbage"))
        assert result.warning == UnsupportedFileFormat("x.gz")

    def test_gzip_disabled(self, trace_bytes):
        registry = ParserRegistry(decompress_gzip=False)
        result = registry.parse(RawFileEntry("wm.gz", trace_bytes.gz(trace_bytes.legacy())))
        assert result.warning == UnsupportedFileFormat("wm.gz")

    def test_unknown_file(self, registry):
        result = registry.parse(RawFileEntry("notes.txt", b"hello world"))

        assert not result.ok
        assert result.handler is None
        assert result.warning == UnsupportedFileFormat("notes.txt")

    def test_register_custom_handler_first(self, registry):
        class TextHandler(FormatHandler):
            name = "text"

            def sniff(self, header, filename):
                return filename.endswith(".txt")

            def decode(self, entry, original):
                return DecodeFailure(("text is not a trace",))

        registry.register(TextHandler(), position=0)
        result = registry.parse(RawFileEntry("notes.txt", b"hello"))

        assert registry.handlers[0].name == "text"
        assert result.handler == "text"
        assert result.warning == UnsupportedFileFormat("notes.txt")

    def test_decode_failure_requires_reason(self):
        with pytest.raises(ValueError):
            DecodeFailure(())
