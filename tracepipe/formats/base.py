"""
TracePipe Format Handler Interface

A handler claims a file with a cheap header sniff, then fully decodes it.
Decoding may still fail; failures are values (DecodeFailure), never
exceptions crossing the registry.
"""

import struct
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

from google.protobuf.message import DecodeError

from tracepipe.core.schema import RawFileEntry
from tracepipe.core.user_warnings import PipelineWarning, UnsupportedFileFormat
from tracepipe.traces.trace import Trace

HEADER_SIZE = 64

# Raised by handlers on malformed bytes; converted to warnings by the registry
DECODE_ERRORS = (
    DecodeError,
    struct.error,
    ValueError,
    IndexError,
    EOFError,
    OSError,
    zlib.error,
)


@dataclass(frozen=True)
class DecodeFailure:
    """A claimed file that did not decode. reasons is ordered and non-empty."""

    reasons: Tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "reasons", tuple(self.reasons))
        if not self.reasons:
            raise ValueError("DecodeFailure needs at least one reason")


DecodeResult = Union[List[Trace], DecodeFailure]


class FormatHandler(ABC):
    """Base class for pluggable trace format handlers."""

    name: str = "handler"

    @abstractmethod
    def sniff(self, header: bytes, filename: str) -> bool:
        """Claim ownership from the first HEADER_SIZE bytes and the name."""

    @abstractmethod
    def decode(self, entry: RawFileEntry, original: RawFileEntry) -> DecodeResult:
        """
        Decode entry into one or more traces.

        entry holds the bytes to decode (already gunzipped); original is the
        file as supplied and is what the traces record as their source.
        """

    def failure_warning(self, filename: str, reasons: Sequence[str]) -> PipelineWarning:
        return UnsupportedFileFormat(filename)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
