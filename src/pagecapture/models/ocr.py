"""OCR result models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class BoundingBox(BaseModel):
    """Pixel-space box of a recognised word."""

    x0: int
    y0: int
    x1: int
    y1: int


class OCRWord(BaseModel):
    """A single recognised word."""

    text: str
    confidence: float = 0.0
    bbox: BoundingBox


class OCRResult(BaseModel):
    """Recognition output for one frame."""

    text: str = ""
    confidence: float = 0.0
    words: list[OCRWord] = Field(default_factory=list)

    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())
