"""
TracePipe Parser Registry

Maps a raw file to at most one format handler. Handlers are tried in a fixed
priority order (structured binary formats before media) and the first
handler whose sniff accepts the header wins. Every failure mode comes back
as a warning value.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from tracepipe.core.schema import RawFileEntry
from tracepipe.core.user_warnings import PipelineWarning, UnsupportedFileFormat
from tracepipe.core.utils import gunzip, is_gzip, strip_gz_suffix
from tracepipe.formats.base import DECODE_ERRORS, HEADER_SIZE, DecodeFailure, FormatHandler
from tracepipe.formats.legacy_proto import LegacyProtoHandler
from tracepipe.formats.media import ScreenRecordingHandler, ScreenshotHandler
from tracepipe.formats.perfetto import PerfettoHandler
from tracepipe.traces.trace import Trace

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    """Outcome of parsing one file: traces, or a warning, never both."""

    filename: str
    traces: List[Trace] = field(default_factory=list)
    warning: Optional[PipelineWarning] = None
    handler: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.warning is None


def default_handlers() -> List[FormatHandler]:
    return [
        LegacyProtoHandler(),
        PerfettoHandler(),
        ScreenRecordingHandler(),
        ScreenshotHandler(),
    ]


class ParserRegistry:
    """Ordered set of format handlers with first-accept-wins dispatch."""

    def __init__(
        self,
        handlers: Optional[Sequence[FormatHandler]] = None,
        decompress_gzip: bool = True,
    ):
        self._handlers: List[FormatHandler] = list(
            handlers if handlers is not None else default_handlers()
        )
        self.decompress_gzip = decompress_gzip

    @property
    def handlers(self) -> List[FormatHandler]:
        return list(self._handlers)

    def register(self, handler: FormatHandler, position: Optional[int] = None) -> None:
        """Add a handler. position=None appends it with the lowest priority."""
        if position is None:
            self._handlers.append(handler)
        else:
            self._handlers.insert(position, handler)
        logger.debug(f"Registered format handler {handler.name}")

    def detect(self, entry: RawFileEntry) -> Optional[FormatHandler]:
        header = entry.header(HEADER_SIZE)
        for handler in self._handlers:
            if handler.sniff(header, entry.name):
                return handler
        return None

    def unwrap(self, entry: RawFileEntry) -> Optional[RawFileEntry]:
        """
        Undo one level of gzip compression.
        Returns None if the file claims to be gzip but does not decompress.
        """
        if not (self.decompress_gzip and is_gzip(entry.data)):
            return entry
        data = gunzip(entry.data)
        if data is None:
            return None
        return RawFileEntry(strip_gz_suffix(entry.name), data, entry.origin_archive)

    def parse(self, original: RawFileEntry) -> ParseResult:
        """
        Detect and decode one file.

        Handler errors on malformed input are caught here and turned into
        the handler's failure warning.
        """
        result = ParseResult(filename=original.name)

        entry = self.unwrap(original)
        if entry is None:
            result.warning = UnsupportedFileFormat(original.name)
            return result

        handler = self.detect(entry)
        if handler is None:
            result.warning = UnsupportedFileFormat(original.name)
            logger.warning(result.warning.message())
            return result

        result.handler = handler.name
        try:
            decoded = handler.decode(entry, original)
        except DECODE_ERRORS as e:
            logger.warning(f"{handler.name} failed to decode {original.name}: {e}")
            result.warning = handler.failure_warning(original.name, [str(e) or type(e).__name__])
            return result

        if isinstance(decoded, DecodeFailure):
            result.warning = handler.failure_warning(original.name, decoded.reasons)
            logger.warning(result.warning.message())
            return result

        result.traces = list(decoded)
        return result
