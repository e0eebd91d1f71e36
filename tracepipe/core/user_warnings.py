"""
TracePipe User Warnings
Data-valued, non-fatal warnings collected during a load and delivered to the
caller's notification sink. They are never raised.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from tracepipe.core.schema import TraceType


@dataclass(frozen=True)
class PipelineWarning:
    """Base class for every warning the pipeline reports."""

    def message(self) -> str:
        raise NotImplementedError

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message()}

    def __str__(self) -> str:
        return self.message()


@dataclass(frozen=True)
class UnsupportedFileFormat(PipelineWarning):
    filename: str

    def message(self) -> str:
        return f"{self.filename}: unsupported format"


@dataclass(frozen=True)
class CorruptedArchive(PipelineWarning):
    archive_ref: str

    def message(self) -> str:
        return f"{self.archive_ref}: corrupted archive"


@dataclass(frozen=True)
class InvalidPerfettoTrace(PipelineWarning):
    """A perfetto container was recognised but held nothing usable."""

    filename: str
    reasons: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Accept any sequence; store a tuple so the warning stays hashable.
        object.__setattr__(self, "reasons", tuple(self.reasons))

    def message(self) -> str:
        return f"{self.filename}: {', '.join(self.reasons)}"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["reasons"] = list(self.reasons)
        return data


@dataclass(frozen=True)
class NoInputFiles(PipelineWarning):
    def message(self) -> str:
        return "No input files"


@dataclass(frozen=True)
class TraceOverridden(PipelineWarning):
    losing_filename: str
    winning_type: TraceType

    def message(self) -> str:
        return (
            f"{self.losing_filename} not loaded: "
            f"another {self.winning_type.display_name} trace takes precedence"
        )
