"""
TracePipe

Ingestion pipeline for device diagnostic traces. Accepts loose trace files,
archives and bugreports, dispatches each file to a format handler, resolves
conflicts between traces of the same kind, and reconciles every trace onto
one real-time clock.
"""

__version__ = "1.0.0"

from tracepipe.config import PipelineConfig
from tracepipe.core.schema import FilesSource, RawFileEntry, TraceType
from tracepipe.core.user_warnings import (
    CorruptedArchive,
    InvalidPerfettoTrace,
    NoInputFiles,
    PipelineWarning,
    TraceOverridden,
    UnsupportedFileFormat,
)
from tracepipe.core.errors import PipelineBusyError, TraceBuildError, TracepipeError

from tracepipe.formats import ParserRegistry
from tracepipe.traces import Trace, TraceCollection
from tracepipe.timestamps import Timestamp, TimestampConverter

from tracepipe.pipeline import (
    PipelineState,
    TracePipeline,
    ProgressListener,
    NotificationListener,
    WarningCollector,
)

__all__ = [
    "__version__",
    "PipelineConfig",
    "FilesSource",
    "RawFileEntry",
    "TraceType",
    "PipelineWarning",
    "UnsupportedFileFormat",
    "CorruptedArchive",
    "InvalidPerfettoTrace",
    "NoInputFiles",
    "TraceOverridden",
    "TracepipeError",
    "PipelineBusyError",
    "TraceBuildError",
    "ParserRegistry",
    "Trace",
    "TraceCollection",
    "Timestamp",
    "TimestampConverter",
    "PipelineState",
    "TracePipeline",
    "ProgressListener",
    "NotificationListener",
    "WarningCollector",
]
