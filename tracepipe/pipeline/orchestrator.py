"""
TracePipe Pipeline Orchestrator

Sequences archive expansion, bugreport filtering, format dispatch, conflict
resolution and timestamp reconciliation, and exposes the
load / build / remove / clear / export lifecycle.

States: EMPTY -> LOADING -> LOADED -> BUILT, and back to EMPTY on clear().
Per-file work fans out on a thread pool; only the coordinating thread
touches the collection and the converter.
"""

import io
import logging
import threading
import uuid
import zipfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from tracepipe.config import PipelineConfig
from tracepipe.core.errors import PipelineBusyError, TraceBuildError
from tracepipe.core.schema import FilesSource, RawFileEntry, TraceType
from tracepipe.core.user_warnings import NoInputFiles, PipelineWarning, UnsupportedFileFormat
from tracepipe.core.utils import Timer, remove_extension, sanitize_filename
from tracepipe.formats.registry import ParseResult, ParserRegistry
from tracepipe.ingest.archive import ArchiveExpander
from tracepipe.ingest.bugreport import BugreportClassifier
from tracepipe.pipeline.progress import NotificationListener, ProgressListener
from tracepipe.timestamps.converter import TimestampConverter, TimestampReconciler
from tracepipe.traces.collection import TraceCollection
from tracepipe.traces.conflict import ConflictResolver
from tracepipe.traces.trace import Trace

logger = logging.getLogger(__name__)

FileInput = Union[RawFileEntry, str, Path, Tuple[str, bytes]]


class PipelineState(Enum):
    """Lifecycle states of a TracePipeline."""

    EMPTY = "empty"
    LOADING = "loading"
    LOADED = "loaded"
    BUILT = "built"


def to_file_entry(item: FileInput) -> RawFileEntry:
    """Normalise a caller-supplied input into a RawFileEntry."""
    if isinstance(item, RawFileEntry):
        return item
    if isinstance(item, (str, Path)):
        path = Path(item)
        return RawFileEntry(name=path.name, data=path.read_bytes())
    if isinstance(item, tuple) and len(item) == 2:
        name, data = item
        return RawFileEntry(name=str(name), data=bytes(data))
    raise TypeError(f"Unsupported input type: {type(item).__name__}")


class TracePipeline:
    """
    Loads a batch of diagnostic files into a TraceCollection.

    Not safe for concurrent load_files/build_traces calls: a second call
    while one is running raises PipelineBusyError.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        registry: Optional[ParserRegistry] = None,
    ):
        self.config = config or PipelineConfig()
        self.registry = registry or ParserRegistry(decompress_gzip=self.config.decompress_gzip)
        self.expander = ArchiveExpander(
            archive_extensions=self.config.archive_extensions,
            max_workers=self.config.max_workers,
        )
        self.classifier = BugreportClassifier(self.config.bugreport_trace_dirs)

        self._traces = TraceCollection()
        self._converter: Optional[TimestampConverter] = None
        self._warnings: List[PipelineWarning] = []
        self._files_source: Optional[FilesSource] = None
        self._download_archive_filename: Optional[str] = None
        self._state = PipelineState.EMPTY
        self._busy = threading.Lock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return self._state

    def get_traces(self) -> TraceCollection:
        return self._traces

    def get_warnings(self) -> List[PipelineWarning]:
        """Warnings of the most recent load_files call."""
        return list(self._warnings)

    def get_timestamp_converter(self) -> Optional[TimestampConverter]:
        return self._converter

    def get_files_source(self) -> Optional[FilesSource]:
        return self._files_source

    def get_screen_recording_video(self) -> Optional[bytes]:
        """Bytes of the screen recording, or of the screenshot if that is all there is."""
        for trace_type in (TraceType.SCREEN_RECORDING, TraceType.SCREENSHOT):
            trace = self._traces.get(trace_type)
            if trace is not None:
                return trace.content
        return None

    def get_download_archive_filename(self) -> str:
        if self._download_archive_filename is None:
            source = self._files_source or FilesSource.UNKNOWN
            self._download_archive_filename = self._make_download_archive_filename([], source)
        return self._download_archive_filename

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load_files(
        self,
        files: Sequence[FileInput],
        source: FilesSource = FilesSource.UNKNOWN,
        notification_sink: Optional[NotificationListener] = None,
        progress_sink: Optional[ProgressListener] = None,
    ) -> TraceCollection:
        """
        Load a batch of files.

        Warnings are reset, collected, and delivered once to
        notification_sink. progress_sink.on_operation_finished fires exactly
        once, whatever the outcome. A call rejected with PipelineBusyError
        signals on_operation_finished(False) before raising and leaves the
        running load untouched.

        Paths that cannot be read are reported as UnsupportedFileFormat.
        """
        progress = progress_sink or ProgressListener()
        notifications = notification_sink or NotificationListener()

        if not self._busy.acquire(blocking=False):
            progress.on_operation_finished(False)
            raise PipelineBusyError("load_files called while another operation is running")

        self._warnings = []
        self._state = PipelineState.LOADING
        success = False

        try:
            with Timer("load_files"):
                entries = self._read_inputs(files)
                success = self._load(entries, source, progress)
        finally:
            self._refresh_state()
            self._busy.release()
            if self._warnings:
                notifications.on_notifications(list(self._warnings))
            progress.on_operation_finished(success)

        logger.info(
            f"Loaded {len(self._traces)} trace(s) with {len(self._warnings)} warning(s)"
        )
        return self._traces

    def build_traces(self) -> int:
        """
        Decode entries of every trace still in the loaded state.

        Traces build independently; a failure leaves that trace in
        BuildFailed and does not stop the others. Returns the number of
        traces built.
        """
        if not self._busy.acquire(blocking=False):
            raise PipelineBusyError("build_traces called while another operation is running")

        try:
            pending = [trace for trace in self._traces if trace.is_loaded]
            if not pending:
                return 0

            workers = min(len(pending), self.config.max_workers)
            with ThreadPoolExecutor(max_workers=workers) as pool:
                outcomes = list(pool.map(self._build_one, pending))
        finally:
            self._refresh_state()
            self._busy.release()

        built = sum(outcomes)
        logger.info(f"Built {built}/{len(pending)} trace(s)")
        return built

    def remove_trace(self, trace: Trace) -> None:
        if self._traces.remove(trace):
            logger.debug(f"Removed {trace.type.display_name} trace")
        self._refresh_state()

    def filter_traces_without_visualization(self) -> None:
        dropped = self._traces.filter_without_visualization()
        if dropped:
            logger.debug(f"Dropped traces without visualization: {[t.type.name for t in dropped]}")
        self._refresh_state()

    def clear(self) -> None:
        """Total reset to the EMPTY state."""
        self._traces.clear()
        self._converter = None
        self._warnings = []
        self._files_source = None
        self._download_archive_filename = None
        self._state = PipelineState.EMPTY

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def make_zip_archive_with_loaded_trace_files(self) -> bytes:
        """Zip the untouched original bytes of every held trace's source files."""
        buffer = io.BytesIO()
        files = self._traces.source_files()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for f in files:
                zf.writestr(f.name, f.data)
        logger.info(f"Archived {len(files)} trace file(s)")
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _read_inputs(self, files: Sequence[FileInput]) -> List[RawFileEntry]:
        entries: List[RawFileEntry] = []
        for item in files:
            try:
                entries.append(to_file_entry(item))
            except OSError as e:
                warning = UnsupportedFileFormat(Path(item).name)
                logger.warning(f"Cannot read {item}: {e}")
                self._warnings.append(warning)
        return entries

    def _load(
        self,
        entries: List[RawFileEntry],
        source: FilesSource,
        progress: ProgressListener,
    ) -> bool:
        progress.on_progress_update("Unzipping files", 0.0)
        expansion = self.expander.expand(entries)
        self._warnings.extend(expansion.warnings)

        progress.on_progress_update("Filtering files", None)
        classification = self.classifier.classify(expansion.entries)
        usable = classification.entries

        if not usable:
            warning = NoInputFiles()
            logger.warning(warning.message())
            self._warnings.append(warning)
            return False

        if classification.is_bugreport and source is not FilesSource.TEST:
            source = FilesSource.BUGREPORT
        self._files_source = source
        self._download_archive_filename = self._make_download_archive_filename(entries, source)

        results = self._parse_all(usable, progress)

        resolver = ConflictResolver(self._traces)
        accepted: List[Trace] = []
        for result in results:
            if result.warning is not None:
                self._warnings.append(result.warning)
                continue
            for trace in result.traces:
                overridden = resolver.offer(trace)
                if overridden is not None:
                    self._warnings.append(overridden)
                accepted.append(trace)

        reconciler = TimestampReconciler()
        reconciler.set_timezone_info(classification.timezone_info)
        if self._converter is not None:
            reconciler.set_timezone_info(self._converter.timezone_info)
        for trace in accepted:
            if self._traces.get(trace.type) is trace:
                reconciler.add_trace(trace)
        for trace in self._traces:
            reconciler.add_trace(trace)
        self._converter = reconciler.build()

        return len(self._traces) > 0

    def _parse_all(
        self, entries: List[RawFileEntry], progress: ProgressListener
    ) -> List[ParseResult]:
        """Parse files in parallel; results come back in input order."""
        slots: List[Optional[ParseResult]] = [None] * len(entries)
        workers = min(len(entries), self.config.max_workers)

        progress.on_progress_update("Parsing files", 0.0)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(self.registry.parse, entry): i for i, entry in enumerate(entries)}
            for done, future in enumerate(as_completed(futures), start=1):
                slots[futures[future]] = future.result()
                progress.on_progress_update("Parsing files", 100.0 * done / len(entries))

        return [slot for slot in slots if slot is not None]

    @staticmethod
    def _build_one(trace: Trace) -> bool:
        try:
            trace.build()
        except TraceBuildError as e:
            logger.warning(f"Failed to build {trace.type.display_name} trace: {e}")
            return False
        return True

    def _refresh_state(self) -> None:
        if len(self._traces) == 0:
            self._state = PipelineState.EMPTY
        elif any(trace.is_loaded for trace in self._traces):
            self._state = PipelineState.LOADED
        else:
            self._state = PipelineState.BUILT

    @staticmethod
    def _make_download_archive_filename(
        inputs: Sequence[RawFileEntry], source: FilesSource
    ) -> str:
        """<file stem or source>_<timestamp>_<random suffix>, filesystem safe."""
        base = remove_extension(inputs[0].name) if len(inputs) == 1 else source.value
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        suffix = uuid.uuid4().hex[:6]
        return sanitize_filename(f"{base}_{stamp}_{suffix}")
