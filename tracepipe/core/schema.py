"""
TracePipe Data Schema Definitions
Dataclasses and enums shared by every pipeline stage - raw file entries,
trace types, batch provenance.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TraceType(Enum):
    """Closed set of trace domains the pipeline can produce."""

    WINDOW_MANAGER = "WindowManager"
    SURFACE_FLINGER = "SurfaceFlinger"
    TRANSACTIONS = "Transactions"
    TRANSITION = "Transitions"
    SHELL_TRANSITION = "ShellTransitions"
    PROTO_LOG = "ProtoLog"
    INPUT_METHOD_CLIENTS = "InputMethodClients"
    INPUT_METHOD_MANAGER_SERVICE = "InputMethodManagerService"
    INPUT_METHOD_SERVICE = "InputMethodService"
    VIEW_CAPTURE = "ViewCapture"
    INPUT_MOTION_EVENT = "MotionEvents"
    INPUT_KEY_EVENT = "KeyEvents"
    SCREEN_RECORDING = "ScreenRecording"
    SCREENSHOT = "Screenshot"

    @property
    def display_name(self) -> str:
        return self.value


class FilesSource(Enum):
    """Provenance of a batch. Only used for naming downloads."""

    TEST = "test"
    UPLOADED = "uploaded"
    COLLECTED = "collected"
    BUGREPORT = "bugreport"
    REMOTE_TOOL = "remote_tool"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RawFileEntry:
    """
    A named binary blob as seen by the pipeline.

    origin_archive is the name of the container the entry was expanded
    from, or None for files supplied directly.
    """

    name: str
    data: bytes
    origin_archive: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def basename(self) -> str:
        return self.name.rsplit("/", 1)[-1]

    def header(self, length: int = 64) -> bytes:
        return self.data[:length]

    def __repr__(self) -> str:
        origin = f", origin={self.origin_archive!r}" if self.origin_archive else ""
        return f"RawFileEntry({self.name!r}, {self.size} bytes{origin})"
