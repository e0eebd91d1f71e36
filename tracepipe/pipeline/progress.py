"""
TracePipe Progress and Notification Sinks

Callers pass any object with the same methods; the classes here are the
stock implementations.
"""

import logging
from typing import List, Optional, Sequence

from tracepipe.core.user_warnings import PipelineWarning

logger = logging.getLogger(__name__)


class ProgressListener:
    """Receives coarse progress and exactly one finished signal per load."""

    def on_progress_update(self, message: str, percentage: Optional[float] = None) -> None:
        pass

    def on_operation_finished(self, success: bool) -> None:
        pass


class NotificationListener:
    """Receives the ordered warnings of one load call."""

    def on_notifications(self, notifications: Sequence[PipelineWarning]) -> None:
        pass


class LoggingProgressListener(ProgressListener):
    """Forwards progress to the log."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def on_progress_update(self, message: str, percentage: Optional[float] = None) -> None:
        if percentage is None:
            self.log.info(message)
        else:
            self.log.info(f"{message} ({percentage:.0f}%)")

    def on_operation_finished(self, success: bool) -> None:
        self.log.info("Operation finished" if success else "Operation finished with no traces")


class WarningCollector(NotificationListener):
    """Accumulates every warning it is notified of."""

    def __init__(self):
        self.warnings: List[PipelineWarning] = []

    def on_notifications(self, notifications: Sequence[PipelineWarning]) -> None:
        self.warnings.extend(notifications)
        for warning in notifications:
            logger.debug(f"Notified: {warning.message()}")

    def clear(self) -> None:
        self.warnings.clear()
