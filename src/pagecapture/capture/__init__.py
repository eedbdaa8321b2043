"""Capture orchestration: the stateful session and the batch queue."""

from pagecapture.capture.batch import BatchProcessor
from pagecapture.capture.session import CaptureSession

__all__ = ["BatchProcessor", "CaptureSession"]
