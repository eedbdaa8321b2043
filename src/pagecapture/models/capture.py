"""Capture configuration and frame models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from pagecapture.settings.config import CaptureSettings


class ImageFormat(str, Enum):
    """Screenshot encodings supported by the capture loop."""

    PNG = "png"
    JPEG = "jpeg"

    @property
    def is_lossy(self) -> bool:
        return self is ImageFormat.JPEG


class ClipRect(BaseModel):
    """Rectangular sub-area of the page, in CSS pixels."""

    model_config = ConfigDict(frozen=True)

    x: float = Field(ge=0)
    y: float = Field(ge=0)
    width: float = Field(gt=0)
    height: float = Field(gt=0)

    def as_playwright(self) -> dict[str, float]:
        """Return the clip in the shape ``page.screenshot(clip=...)`` expects."""
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def parse(cls, value: str) -> "ClipRect":
        """Parse an ``x,y,width,height`` string."""
        parts = [p.strip() for p in value.split(",")]
        if len(parts) != 4:
            raise ValueError(f"Clip must be 'x,y,width,height', got {value!r}")
        x, y, width, height = (float(p) for p in parts)
        return cls(x=x, y=y, width=width, height=height)


class CaptureConfig(BaseModel):
    """Settings for one capture run.

    Frozen: the session swaps the whole object on update so a running loop
    always sees either the old or the new configuration, never a mix.
    """

    model_config = ConfigDict(frozen=True)

    total_pages: int = Field(default=100, ge=1)
    delay: float = Field(default=5.0, ge=0)
    clip: ClipRect | None = None
    retry_attempts: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)
    image_format: ImageFormat = ImageFormat.PNG
    jpeg_quality: int = Field(default=85, ge=0, le=100)
    add_metadata: bool = True
    max_memory_mb: int = Field(default=500, gt=0)
    enable_ocr: bool = False
    next_key: str = "ArrowRight"

    @classmethod
    def from_settings(cls, settings: CaptureSettings) -> "CaptureConfig":
        """Seed a config from the ``[capture]`` settings section."""
        return cls(
            total_pages=settings.total_pages,
            delay=settings.delay_sec,
            retry_attempts=settings.retry_attempts,
            retry_delay=settings.retry_delay_sec,
            image_format=ImageFormat(settings.image_format),
            jpeg_quality=settings.jpeg_quality,
            add_metadata=settings.add_metadata,
            max_memory_mb=settings.max_memory_mb,
            enable_ocr=settings.enable_ocr,
            next_key=settings.next_key,
        )

    def merged(self, **changes: Any) -> "CaptureConfig":
        """Return a validated copy with *changes* applied.

        ``None`` values are ignored so callers can pass optional arguments
        straight through; use ``clear_clip`` to reset the clip region.
        """
        data = self.model_dump()
        if changes.pop("clear_clip", False):
            data["clip"] = None
        for key, value in changes.items():
            if key not in type(self).model_fields:
                raise ValueError(f"Unknown capture setting: {key}")
            if value is not None:
                data[key] = value
        return type(self).model_validate(data)

    @property
    def memory_warning_bytes(self) -> float:
        """Accumulated frame size above which a memory warning is logged."""
        return self.max_memory_mb * 1024 * 1024 * 0.8


@dataclass(frozen=True)
class CapturedFrame:
    """One captured page image."""

    image_bytes: bytes
    is_lossy: bool = False

    @property
    def size(self) -> int:
        return len(self.image_bytes)
