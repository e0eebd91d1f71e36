"""
TracePipe Exceptions
Raised only for programming-contract violations. Malformed input is always
reported through user warnings instead.
"""


class TracepipeError(Exception):
    """Base class for tracepipe errors."""


class PipelineBusyError(TracepipeError, RuntimeError):
    """A load or build was started while another one is still running."""


class TraceBuildError(TracepipeError):
    """A loaded trace could not be turned into entries."""
