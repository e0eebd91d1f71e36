"""
TracePipe Integration Tests
Full load / build / export cycles over mixed batches.
"""

import io
import json
import subprocess
import sys
import zipfile

import pytest

from tracepipe.core.schema import FilesSource, RawFileEntry, TraceType
from tracepipe.core.user_warnings import TraceOverridden
from tracepipe.pipeline.orchestrator import PipelineState, TracePipeline
from tracepipe.pipeline.progress import WarningCollector
from tracepipe.traces.table import entries_table

NS_PER_S = 1_000_000_000
REAL_OFFSET = 1659107074601779989


class TestMixedBatch:
    """A bugreport, a perfetto trace and media files in one batch."""

    @pytest.fixture
    def batch(self, trace_bytes):
        wm = trace_bytes.legacy(b"WINTRACE", timestamps=(14500282843, 14600282843),
                                real_to_elapsed_offset=REAL_OFFSET)
        bugreport = trace_bytes.bugreport_zip(
            timezone="Asia/Kolkata",
            traces=[("FS/data/misc/wmtrace/wm_trace.winscope", wm)],
            extra=[("FS/data/anr/anr_2022.txt", b"not a trace")],
        )
        perfetto = trace_bytes.perfetto(
            {
                "surfaceflinger_layers_snapshot": (14500000000, 14700000000),
                "shell_transition": (14550000000,),
                "android_input_event.motion_event": (14510000000,),
            },
            realtime_ns=REAL_OFFSET + 14400000000,
            boottime_ns=14400000000,
        )
        return [
            RawFileEntry("bugreport-2022-07-29.zip", bugreport),
            RawFileEntry("trace.perfetto-trace", perfetto),
            RawFileEntry("screenshot.png", trace_bytes.png()),
            RawFileEntry("screen.mp4", trace_bytes.screen_recording((14500000000,), REAL_OFFSET)),
        ]

    def test_full_cycle(self, batch, config):
        pipeline = TracePipeline(config=config)
        collector = WarningCollector()

        pipeline.load_files(batch, source=FilesSource.COLLECTED, notification_sink=collector)

        assert pipeline.get_traces().types() == [
            TraceType.WINDOW_MANAGER,
            TraceType.SURFACE_FLINGER,
            TraceType.TRANSITION,
            TraceType.INPUT_MOTION_EVENT,
            TraceType.SCREEN_RECORDING,
        ]
        assert collector.warnings == [TraceOverridden("screenshot.png", TraceType.SCREEN_RECORDING)]
        assert pipeline.get_files_source() is FilesSource.BUGREPORT

        assert pipeline.build_traces() == 5
        assert pipeline.state is PipelineState.BUILT

        converter = pipeline.get_timestamp_converter()
        assert converter.get_utc_offset() == "UTC+05:30"
        sf = pipeline.get_traces().get(TraceType.SURFACE_FLINGER)
        first = converter.make_timestamp_from_monotonic_ns(int(sf.timestamps[0]))
        assert first.value_ns == REAL_OFFSET + 14500000000
        assert first.utc_offset_ns == 19800 * NS_PER_S

        table = entries_table(pipeline.get_traces(), converter)
        assert table.num_rows == 2 + 2 + 1 + 1 + 1

        with zipfile.ZipFile(io.BytesIO(pipeline.make_zip_archive_with_loaded_trace_files())) as zf:
            assert sorted(zf.namelist()) == [
                "FS/data/misc/wmtrace/wm_trace.winscope",
                "screen.mp4",
                "trace.perfetto-trace",
            ]

        pipeline.filter_traces_without_visualization()
        assert TraceType.INPUT_MOTION_EVENT not in pipeline.get_traces()

        pipeline.clear()
        assert pipeline.state is PipelineState.EMPTY


class TestCLIIntegration:
    """CLI run as a separate process."""

    def test_module_entry_point(self, tmp_path, trace_bytes):
        trace = tmp_path / "wm_trace.winscope"
        trace.write_bytes(trace_bytes.legacy())

        proc = subprocess.run(
            [sys.executable, "-m", "tracepipe", "load", "--json", str(trace)],
            capture_output=True,
            text=True,
            timeout=120,
        )

        assert proc.returncode == 0, proc.stderr
        summary = json.loads(proc.stdout)
        assert summary["traces"][0]["type"] == "WindowManager"
