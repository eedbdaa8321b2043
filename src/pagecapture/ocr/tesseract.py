"""Tesseract OCR adapter.

Recognition runs ``pytesseract.image_to_data`` in a worker thread so a long
document does not block the event loop. The tesseract binary is located
lazily on first use: explicit setting, ``TESSERACT_CMD``, ``PATH``, then the
usual install locations for the platform.
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
import platform
import shutil
from pathlib import Path
from typing import Any, Protocol, Sequence, runtime_checkable

import pytesseract
from PIL import Image

from pagecapture.exceptions import OCRError
from pagecapture.models.capture import CapturedFrame
from pagecapture.models.ocr import BoundingBox, OCRResult, OCRWord

logger = logging.getLogger(__name__)

# OEM 3 = default LSTM engine, PSM 6 = uniform block of text
DEFAULT_TESSERACT_CONFIG = "--oem 3 --psm 6 -c preserve_interword_spaces=1"

_INSTALL_CANDIDATES: dict[str, tuple[str, ...]] = {
    "Windows": (
        r"C:\Program Files\Tesseract-OCR\tesseract.exe",
        r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
    ),
    "Darwin": (
        "/opt/homebrew/bin/tesseract",
        "/usr/local/bin/tesseract",
    ),
}
_DEFAULT_CANDIDATES = (
    "/usr/bin/tesseract",
    "/usr/local/bin/tesseract",
    "/snap/bin/tesseract",
)


@runtime_checkable
class OCREngine(Protocol):
    """Text recognition over captured frames."""

    async def process_frames(self, frames: Sequence[CapturedFrame]) -> list[OCRResult]:
        """Recognise every frame; the result list is aligned with *frames*."""
        ...

    async def extract_text(self, image_bytes: bytes) -> OCRResult:
        """Recognise a single encoded image."""
        ...

    async def terminate(self) -> None:
        """Release engine resources."""
        ...


def resolve_tesseract_cmd(explicit: str | None = None) -> str | None:
    """Locate the tesseract binary, or return None if it cannot be found."""
    if explicit:
        return explicit if Path(explicit).exists() else None

    cmd = os.getenv("TESSERACT_CMD")
    if cmd and Path(cmd).exists():
        return cmd

    cmd = shutil.which("tesseract")
    if cmd:
        return cmd

    for candidate in _INSTALL_CANDIDATES.get(platform.system(), _DEFAULT_CANDIDATES):
        if Path(candidate).exists():
            return candidate
    return None


class TesseractOCR:
    """``OCREngine`` backed by a local tesseract install.

    Args:
        language: Tesseract language spec, e.g. ``"jpn+eng"``.
        tesseract_cmd: Explicit path to the binary; resolved automatically
            when empty.
        config: Extra tesseract command-line configuration.
    """

    def __init__(
        self,
        language: str = "jpn+eng",
        tesseract_cmd: str | None = None,
        config: str = DEFAULT_TESSERACT_CONFIG,
    ) -> None:
        self.language = language
        self._tesseract_cmd = tesseract_cmd or None
        self._config = config
        self._ready = False

    async def initialize(self) -> None:
        """Resolve the binary and check that it runs.

        Raises:
            OCRError: If tesseract is missing or unusable.
        """
        if self._ready:
            return
        cmd = resolve_tesseract_cmd(self._tesseract_cmd)
        if cmd is None:
            raise OCRError("Tesseract binary not found (set ocr.tesseract_cmd or TESSERACT_CMD)")
        pytesseract.pytesseract.tesseract_cmd = cmd
        try:
            version = await asyncio.to_thread(pytesseract.get_tesseract_version)
        except (pytesseract.TesseractNotFoundError, OSError) as exc:
            raise OCRError(f"Tesseract is not usable at {cmd}: {exc}") from exc
        logger.info("Tesseract %s ready (lang=%s)", version, self.language)
        self._ready = True

    async def process_frames(self, frames: Sequence[CapturedFrame]) -> list[OCRResult]:
        await self.initialize()
        results: list[OCRResult] = []
        for index, frame in enumerate(frames, start=1):
            logger.debug("OCR page %d/%d", index, len(frames))
            results.append(await self.extract_text(frame.image_bytes))
        logger.info("OCR finished for %d page(s)", len(results))
        return results

    async def extract_text(self, image_bytes: bytes) -> OCRResult:
        await self.initialize()
        try:
            data = await asyncio.to_thread(self._recognize, image_bytes)
        except Exception as exc:
            logger.warning("OCR failed for one page, continuing without text: %s", exc)
            return OCRResult()
        return _to_result(data)

    async def terminate(self) -> None:
        if self._ready:
            logger.debug("OCR engine released")
        self._ready = False

    def _recognize(self, image_bytes: bytes) -> dict[str, list[Any]]:
        with Image.open(io.BytesIO(image_bytes)) as img:
            return pytesseract.image_to_data(
                img.convert("RGB"),
                lang=self.language,
                config=self._config,
                output_type=pytesseract.Output.DICT,
            )


def _to_result(data: dict[str, list[Any]]) -> OCRResult:
    """Convert ``image_to_data`` output into an ``OCRResult``.

    Words are grouped back into lines by (block, paragraph, line) so the
    text layer keeps the page's reading order.
    """
    words: list[OCRWord] = []
    lines: dict[tuple[int, int, int], list[str]] = {}

    for i, raw_text in enumerate(data.get("text", [])):
        text = str(raw_text).strip()
        confidence = float(data["conf"][i])
        if not text or confidence < 0:
            continue
        left, top = int(data["left"][i]), int(data["top"][i])
        words.append(
            OCRWord(
                text=text,
                confidence=confidence,
                bbox=BoundingBox(
                    x0=left,
                    y0=top,
                    x1=left + int(data["width"][i]),
                    y1=top + int(data["height"][i]),
                ),
            )
        )
        key = (int(data["block_num"][i]), int(data["par_num"][i]), int(data["line_num"][i]))
        lines.setdefault(key, []).append(text)

    mean_conf = sum(w.confidence for w in words) / len(words) if words else 0.0
    return OCRResult(
        text="\n".join(" ".join(parts) for parts in lines.values()),
        confidence=round(mean_conf, 2),
        words=words,
    )
