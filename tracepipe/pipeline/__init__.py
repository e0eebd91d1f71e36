"""
TracePipe Pipeline - orchestration and progress reporting.
"""

from tracepipe.pipeline.orchestrator import PipelineState, TracePipeline, to_file_entry
from tracepipe.pipeline.progress import (
    LoggingProgressListener,
    NotificationListener,
    ProgressListener,
    WarningCollector,
)

__all__ = [
    "PipelineState",
    "TracePipeline",
    "to_file_entry",
    "LoggingProgressListener",
    "NotificationListener",
    "ProgressListener",
    "WarningCollector",
]
