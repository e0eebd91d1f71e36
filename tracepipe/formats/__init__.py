"""
TracePipe Formats - pluggable trace format handlers and their registry.
"""

from tracepipe.formats.base import DecodeFailure, FormatHandler
from tracepipe.formats.legacy_proto import LEGACY_MAGICS, LegacyProtoHandler
from tracepipe.formats.media import ScreenRecordingHandler, ScreenshotHandler
from tracepipe.formats.perfetto import PERFETTO_CATEGORIES, PerfettoCategory, PerfettoHandler
from tracepipe.formats.registry import ParseResult, ParserRegistry, default_handlers

__all__ = [
    "DecodeFailure",
    "FormatHandler",
    "LEGACY_MAGICS",
    "LegacyProtoHandler",
    "ScreenRecordingHandler",
    "ScreenshotHandler",
    "PERFETTO_CATEGORIES",
    "PerfettoCategory",
    "PerfettoHandler",
    "ParseResult",
    "ParserRegistry",
    "default_handlers",
]
