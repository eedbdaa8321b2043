"""pagecapture exception hierarchy."""

from __future__ import annotations


class PageCaptureError(Exception):
    """Base exception for all pagecapture errors."""


class BrowserLaunchError(PageCaptureError):
    """Raised when the automation surface cannot be created after all retries."""


class BrowserNotConnectedError(PageCaptureError):
    """Raised when an operation needs an attached browser surface."""

    def __init__(self, message: str = "Browser not connected") -> None:
        super().__init__(message)


class CaptureStateError(PageCaptureError):
    """Raised when an operation is not valid in the session's current state.

    Attributes:
        operation: The rejected operation name.
        state: The state the session was in.
    """

    def __init__(self, operation: str, state: str, detail: str = "") -> None:
        self.operation = operation
        self.state = state
        message = f"Cannot {operation} while session is {state}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SurfaceBusyError(PageCaptureError):
    """Raised when the browser surface is requested while a capture loop owns it."""

    def __init__(self) -> None:
        super().__init__("Browser surface is in use by an active capture loop")


class BatchError(PageCaptureError):
    """Base class for batch queue errors."""


class BatchBusyError(BatchError):
    """Raised when the queue is started or cleared while processing."""


class EmptyQueueError(BatchError):
    """Raised when processing is started on an empty queue."""

    def __init__(self) -> None:
        super().__init__("Queue is empty")


class DocumentAssemblyError(PageCaptureError):
    """Raised when no output document could be produced."""


class OCRError(PageCaptureError):
    """Raised when the OCR engine cannot be initialised."""


class NavigationError(PageCaptureError):
    """Raised for navigation failures that retrying cannot fix (DNS, TLS, refused).

    Attributes:
        url: The URL that failed.
        reason: Short human-readable reason.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}")
