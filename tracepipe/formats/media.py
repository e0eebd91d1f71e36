"""
TracePipe Screen Capture Media

Screen recordings are mp4 files with an embedded winscope metadata block
holding per-frame monotonic timestamps. Screenshots are plain PNG files.
"""

import logging
import struct
from typing import List, Optional, Tuple

from tracepipe.core.schema import RawFileEntry, TraceType
from tracepipe.formats.base import DecodeResult, FormatHandler
from tracepipe.traces.trace import RawLoaded, SourceKind, Trace, TraceEntry

logger = logging.getLogger(__name__)

MP4_FTYP = b"ftyp"
METADATA_MAGIC_V1 = b"#VV1NSC0PET1ME!#"
METADATA_MAGIC_V2 = b"#VV1NSC0PET1ME2#"

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
PNG_IHDR = struct.Struct(">4sII")  # chunk type, width, height


def parse_recording_metadata(data: bytes) -> Tuple[List[int], Optional[int]]:
    """
    Frame timestamps and real-to-monotonic offset from a recording.

    v2 layout after the magic: u32 version, i64 offset, u32 count, u64 frames.
    v1 layout after the magic: u32 count, u64 frames. All little endian.
    """
    pos = data.find(METADATA_MAGIC_V2)
    if pos >= 0:
        pos += len(METADATA_MAGIC_V2)
        version, offset, count = struct.unpack_from("<IqI", data, pos)
        pos += struct.calcsize("<IqI")
        logger.debug(f"Screen recording metadata v{version}, {count} frames")
        frames = list(struct.unpack_from(f"<{count}Q", data, pos))
        return frames, offset

    pos = data.find(METADATA_MAGIC_V1)
    if pos >= 0:
        pos += len(METADATA_MAGIC_V1)
        (count,) = struct.unpack_from("<I", data, pos)
        pos += 4
        frames = list(struct.unpack_from(f"<{count}Q", data, pos))
        return frames, None

    return [], None


def _frame_entry(index: int, raw: bytes) -> TraceEntry:
    (timestamp,) = struct.unpack("<Q", raw)
    return TraceEntry(index=index, timestamp_ns=timestamp, fields={"frame": index})


class ScreenRecordingHandler(FormatHandler):
    name = "screen_recording"

    def sniff(self, header: bytes, filename: str) -> bool:
        return header[4:8] == MP4_FTYP

    def decode(self, entry: RawFileEntry, original: RawFileEntry) -> DecodeResult:
        frames, offset = parse_recording_metadata(entry.data)
        if not frames:
            logger.info(f"{entry.name}: screen recording without frame metadata")

        state = RawLoaded(
            raw_entries=tuple(struct.pack("<Q", ts) for ts in frames),
            decoder=_frame_entry,
            first_timestamp_ns=frames[0] if frames else None,
            real_to_monotonic_offset_ns=offset,
        )
        trace = Trace(TraceType.SCREEN_RECORDING, [original], state, SourceKind.MEDIA,
                      content=entry.data)
        return [trace]


def _screenshot_entry(index: int, raw: bytes) -> TraceEntry:
    _, width, height = PNG_IHDR.unpack_from(raw, 12)
    return TraceEntry(index=index, timestamp_ns=0, fields={"width": width, "height": height})


class ScreenshotHandler(FormatHandler):
    name = "screenshot"

    def sniff(self, header: bytes, filename: str) -> bool:
        return header[:8] == PNG_SIGNATURE

    def decode(self, entry: RawFileEntry, original: RawFileEntry) -> DecodeResult:
        chunk_type, _, _ = PNG_IHDR.unpack_from(entry.data, 12)
        if chunk_type != b"IHDR":
            raise ValueError(f"{entry.name}: PNG without IHDR chunk")

        state = RawLoaded(raw_entries=(entry.data[:32],), decoder=_screenshot_entry)
        trace = Trace(TraceType.SCREENSHOT, [original], state, SourceKind.MEDIA,
                      content=entry.data)
        return [trace]
