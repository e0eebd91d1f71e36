"""
TracePipe Core Module - schemas, warnings, errors and utilities.
"""

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

__all__ = [
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
]
