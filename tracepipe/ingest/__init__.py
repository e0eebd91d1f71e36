"""
TracePipe Ingest - archive expansion and bugreport filtering.
"""

from tracepipe.ingest.archive import ArchiveExpander, ArchiveKind, ExpansionResult
from tracepipe.ingest.bugreport import (
    BugreportBundle,
    BugreportClassifier,
    ClassificationResult,
    TimezoneInfo,
    parse_timezone_info,
)

__all__ = [
    "ArchiveExpander",
    "ArchiveKind",
    "ExpansionResult",
    "BugreportBundle",
    "BugreportClassifier",
    "ClassificationResult",
    "TimezoneInfo",
    "parse_timezone_info",
]
