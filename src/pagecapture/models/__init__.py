"""Data models for capture sessions, batch queues and OCR results."""

from pagecapture.models.batch import (
    BatchItem,
    BatchItemResult,
    BatchItemStatus,
    BatchOptions,
    BatchStatus,
)
from pagecapture.models.capture import CaptureConfig, CapturedFrame, ClipRect, ImageFormat
from pagecapture.models.ocr import BoundingBox, OCRResult, OCRWord
from pagecapture.models.states import CaptureState

__all__ = [
    "BatchItem",
    "BatchItemResult",
    "BatchItemStatus",
    "BatchOptions",
    "BatchStatus",
    "BoundingBox",
    "CaptureConfig",
    "CaptureState",
    "CapturedFrame",
    "ClipRect",
    "ImageFormat",
    "OCRResult",
    "OCRWord",
]
