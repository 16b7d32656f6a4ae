"""
Errors
======
Exception types raised at the Kubernetes store seam and handled by the
build controller.

Transient errors (conflicts, throttling, server errors, dropped connections)
are retried by the controller; everything else drops the event.
"""
from typing import Optional


class ControllerError(Exception):
    """Base class for build controller errors."""


class ActivityStoreError(ControllerError):
    """A PipelineActivity could not be read or written."""

    def __init__(self, message: str, status: Optional[int] = None, transient: bool = False) -> None:
        super().__init__(message)
        self.status = status
        self.transient = transient


class ActivityConflictError(ActivityStoreError):
    """The resourceVersion we wrote against is no longer current."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status=409, transient=True)


class LogPublishError(ControllerError):
    """Build logs could not be fetched or pushed."""
