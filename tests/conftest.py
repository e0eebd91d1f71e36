"""
TracePipe Test Configuration and Fixtures
=========================================
Shared fixtures for all tests. Trace files are synthesised in memory so
the suite needs no device captures.
"""

import gzip
import io
import struct
import tarfile
import zipfile
from typing import Dict, Iterable, Optional, Sequence, Tuple
from unittest.mock import MagicMock

import pytest

from tracepipe.config import PipelineConfig
from tracepipe.core.schema import RawFileEntry
from tracepipe.formats.media import METADATA_MAGIC_V1, METADATA_MAGIC_V2, PNG_SIGNATURE
from tracepipe.formats.schema import (
    CLOCK_BOOTTIME,
    CLOCK_REALTIME,
    LegacyTraceEntry,
    LegacyTraceFile,
    PerfettoTrace,
    TracePacket,
    magic_number,
)
from tracepipe.pipeline.orchestrator import TracePipeline


# =============================================================================
# Trace byte builders
# =============================================================================

class TraceBytes:
    """Builds the bytes of every file kind the pipeline understands."""

    def legacy(
        self,
        magic: bytes = b"WINTRACE",
        timestamps: Sequence[int] = (1_000, 2_000, 3_000),
        real_to_elapsed_offset: Optional[int] = None,
    ) -> bytes:
        message = LegacyTraceFile()
        message.magic_number = magic_number(magic)
        for i, ts in enumerate(timestamps):
            entry = LegacyTraceEntry(elapsed_realtime_nanos=ts, where=f"entry{i}")
            message.entry.append(entry.SerializeToString())
        if real_to_elapsed_offset is not None:
            message.real_to_elapsed_time_offset_nanos = real_to_elapsed_offset
        return message.SerializeToString()

    def perfetto(
        self,
        categories: Dict[str, Sequence[int]],
        realtime_ns: Optional[int] = None,
        boottime_ns: Optional[int] = None,
    ) -> bytes:
        """
        categories maps a TracePacket payload path ("protolog_message",
        "winscope_extensions.viewcapture", ...) to packet timestamps.
        """
        trace = PerfettoTrace()

        if realtime_ns is not None and boottime_ns is not None:
            packet = TracePacket(timestamp=boottime_ns)
            for clock_id, value in ((CLOCK_REALTIME, realtime_ns), (CLOCK_BOOTTIME, boottime_ns)):
                clock = packet.clock_snapshot.clocks.add()
                clock.clock_id = clock_id
                clock.timestamp = value
            trace.packet.append(packet.SerializeToString())

        for path, timestamps in categories.items():
            *parents, leaf = path.split(".")
            for ts in timestamps:
                packet = TracePacket(timestamp=ts, trusted_packet_sequence_id=1)
                target = packet
                for name in parents:
                    target = getattr(target, name)
                setattr(target, leaf, b"payload")
                trace.packet.append(packet.SerializeToString())

        return trace.SerializeToString()

    def empty_perfetto(self) -> bytes:
        trace = PerfettoTrace()
        trace.packet.append(TracePacket(timestamp=5, trusted_packet_sequence_id=1).SerializeToString())
        return trace.SerializeToString()

    def screen_recording(
        self,
        frames: Sequence[int] = (10_000, 20_000),
        real_to_monotonic_offset: int = 0,
        version: int = 2,
    ) -> bytes:
        data = b"\x00\x00\x00\x20ftypmp42" + b"\x00" * 16 + b"mdat" + b"\x00" * 32
        if version == 2:
            data += METADATA_MAGIC_V2
            data += struct.pack("<IqI", 2, real_to_monotonic_offset, len(frames))
        else:
            data += METADATA_MAGIC_V1
            data += struct.pack("<I", len(frames))
        data += struct.pack(f"<{len(frames)}Q", *frames)
        return data

    def png(self, width: int = 1080, height: int = 2400) -> bytes:
        ihdr = b"IHDR" + struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
        return PNG_SIGNATURE + struct.pack(">I", 13) + ihdr + b"\x00" * 4 + b"IEND"

    def jpg(self) -> bytes:
        return b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 64

    def zip(self, members: Iterable[Tuple[str, bytes]]) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            for name, data in members:
                zf.writestr(name, data)
        return buffer.getvalue()

    def tar(self, members: Iterable[Tuple[str, bytes]], compress: bool = False) -> bytes:
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz" if compress else "w") as tf:
            for name, data in members:
                info = tarfile.TarInfo(name)
                info.size = len(data)
                tf.addfile(info, io.BytesIO(data))
        return buffer.getvalue()

    def corrupted_zip(self) -> bytes:
        return self.zip([("a.winscope", self.legacy())])[:40]

    def gz(self, data: bytes) -> bytes:
        return gzip.compress(data)

    def bugreport_zip(
        self,
        timezone: str = "Asia/Kolkata",
        traces: Optional[Iterable[Tuple[str, bytes]]] = None,
        extra: Optional[Iterable[Tuple[str, bytes]]] = None,
    ) -> bytes:
        report_name = "bugreport-device-2022-07-29-21-14-34.txt"
        report = (
            "== dumpstate: 2022-07-29 21:14:34\n"
            f"[persist.sys.locale]: [en-US]\n"
            f"[persist.sys.timezone]: [{timezone}]\n"
        ).encode()
        members = [("main_entry.txt", report_name.encode()), (report_name, report)]
        members.extend(traces or [])
        members.extend(extra or [])
        return self.zip(members)


@pytest.fixture
def trace_bytes() -> TraceBytes:
    return TraceBytes()


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def wm_trace(trace_bytes) -> RawFileEntry:
    return RawFileEntry("wm_trace.winscope", trace_bytes.legacy(b"WINTRACE"))


@pytest.fixture
def sf_trace(trace_bytes) -> RawFileEntry:
    return RawFileEntry("SurfaceFlinger.pb", trace_bytes.legacy(b"LYRTRACE"))


@pytest.fixture
def screenshot(trace_bytes) -> RawFileEntry:
    return RawFileEntry("screenshot.png", trace_bytes.png())


@pytest.fixture
def screen_recording(trace_bytes) -> RawFileEntry:
    return RawFileEntry("screen_recording.mp4", trace_bytes.screen_recording())


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig(max_workers=2)


@pytest.fixture
def pipeline(config) -> TracePipeline:
    return TracePipeline(config=config)


@pytest.fixture
def progress_sink():
    """Mock progress listener."""
    sink = MagicMock()
    sink.on_progress_update = MagicMock()
    sink.on_operation_finished = MagicMock()
    return sink


@pytest.fixture
def notification_sink():
    """Mock notification listener."""
    sink = MagicMock()
    sink.on_notifications = MagicMock()
    return sink


# =============================================================================
# Test Markers
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow running")
