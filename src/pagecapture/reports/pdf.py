"""PDF assembly for captured frames.

Each frame becomes one page sized exactly to the image's pixel dimensions,
so nothing is scaled or letterboxed. When OCR ran, the recognised text is
written over the page at font size 1 and near-zero opacity: invisible when
viewing, but selectable and searchable.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Sequence

import fitz
from PIL import Image

from pagecapture.exceptions import DocumentAssemblyError
from pagecapture.models.capture import CapturedFrame
from pagecapture.models.ocr import OCRResult
from pagecapture.utils import filename_timestamp, local_now

logger = logging.getLogger(__name__)

APP_NAME = "pagecapture"
_TEXT_OPACITY = 0.01
_TEXT_FONT_SIZE = 1
_KEYWORDS = "screenshot, capture, pdf"

# PyMuPDF built-in CJK fonts by Tesseract language code. Base-14 fonts
# cannot encode these scripts.
_CJK_FONTS = {
    "jpn": "japan",
    "jpn_vert": "japan",
    "chi_sim": "china-s",
    "chi_sim_vert": "china-s",
    "chi_tra": "china-t",
    "chi_tra_vert": "china-t",
    "kor": "korea",
    "kor_vert": "korea",
}
_DEFAULT_FONT = "helv"


def overlay_font_for(language: str) -> str:
    """Return a text-layer font that can encode *language* (e.g. ``"jpn+eng"``)."""
    for code in language.split("+"):
        font = _CJK_FONTS.get(code.strip())
        if font:
            return font
    return _DEFAULT_FONT


@dataclass(frozen=True)
class AssembledDocument:
    """A PDF written by :class:`DocumentAssembler`."""

    path: Path
    page_count: int
    size_bytes: int
    has_text_layer: bool
    skipped_frames: int = 0

    @property
    def filename(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class SavedDocument:
    """One entry of the document history listing."""

    name: str
    path: Path
    size_bytes: int
    modified: datetime

    @property
    def date(self) -> str:
        return self.modified.strftime("%Y-%m-%d %H:%M")


class DocumentAssembler:
    """Assemble frames into a paginated PDF.

    Args:
        output_dir: Directory the PDF is written to (created on demand).
        utc_offset_hours: Fixed offset used for the filename timestamp and
            metadata date.
        font_name: PyMuPDF base-14 or CJK built-in font for the text
            layer; see :func:`overlay_font_for`.
    """

    def __init__(
        self,
        output_dir: Path,
        utc_offset_hours: float = 9.0,
        font_name: str = _DEFAULT_FONT,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.utc_offset_hours = utc_offset_hours
        self.font_name = font_name

    def assemble(
        self,
        frames: Sequence[CapturedFrame],
        ocr_results: Sequence[OCRResult] | None = None,
        *,
        add_metadata: bool = True,
        ocr_enabled: bool = False,
    ) -> AssembledDocument:
        """Write *frames* (in order) to a new PDF.

        Args:
            frames: Captured frames; one page per embeddable frame.
            ocr_results: Per-frame OCR output aligned by index. May be shorter
                than *frames* or None.
            add_metadata: Set title, author, subject and dates.
            ocr_enabled: Whether OCR was requested for the run; controls the
                ``_ocr`` filename suffix.

        Raises:
            DocumentAssemblyError: If no frame could be embedded or the file
                could not be written.
        """
        now = local_now(self.utc_offset_hours)
        doc = fitz.open()
        has_text = False
        skipped = 0
        try:
            for index, frame in enumerate(frames):
                ocr = ocr_results[index] if ocr_results and index < len(ocr_results) else None
                try:
                    if self._add_page(doc, frame, ocr if ocr_enabled else None):
                        has_text = True
                except Exception as exc:
                    skipped += 1
                    logger.error("Skipping page %d, could not embed image: %s", index + 1, exc)

            page_count = doc.page_count
            if page_count == 0:
                raise DocumentAssemblyError(f"No embeddable frames out of {len(frames)}")

            if add_metadata:
                self._set_metadata(doc, now, page_count)

            path = self._next_path(now, ocr_enabled)
            path.parent.mkdir(parents=True, exist_ok=True)
            try:
                doc.save(str(path), garbage=3, deflate=True)
            except Exception as exc:
                raise DocumentAssemblyError(f"Could not write {path}: {exc}") from exc
        finally:
            doc.close()

        size = path.stat().st_size
        logger.info("PDF saved: %s (%d pages, %d bytes, text=%s)", path, page_count, size, has_text)
        return AssembledDocument(
            path=path,
            page_count=page_count,
            size_bytes=size,
            has_text_layer=has_text,
            skipped_frames=skipped,
        )

    def _add_page(self, doc: fitz.Document, frame: CapturedFrame, ocr: OCRResult | None) -> bool:
        """Append one page; return True if a text layer was written.

        A failed image embed removes the page and raises. A failed text
        insert only drops the text layer; the image page is kept.
        """
        with Image.open(io.BytesIO(frame.image_bytes)) as img:
            width, height = img.size

        page = doc.new_page(width=width, height=height)
        try:
            page.insert_image(page.rect, stream=frame.image_bytes)
        except Exception:
            doc.delete_page(page.number)
            raise

        if ocr is None or not ocr.has_text:
            return False
        try:
            page.insert_text(
                (0, _TEXT_FONT_SIZE),
                ocr.text,
                fontsize=_TEXT_FONT_SIZE,
                fontname=self.font_name,
                color=(1, 1, 1),
                fill_opacity=_TEXT_OPACITY,
            )
        except Exception as exc:
            logger.warning("Page %d kept without text layer: %s", page.number + 1, exc)
            return False
        return True

    def _set_metadata(self, doc: fitz.Document, now: datetime, page_count: int) -> None:
        pdf_now = fitz.get_pdf_now()
        doc.set_metadata(
            {
                "title": f"Screen Capture - {now:%Y-%m-%d}",
                "author": APP_NAME,
                "subject": f"{page_count} pages captured",
                "keywords": _KEYWORDS,
                "creator": f"{APP_NAME} (Playwright + PyMuPDF)",
                "producer": APP_NAME,
                "creationDate": pdf_now,
                "modDate": pdf_now,
            }
        )

    def _next_path(self, now: datetime, ocr_enabled: bool) -> Path:
        stem = f"capture_{filename_timestamp(now)}{'_ocr' if ocr_enabled else ''}"
        path = self.output_dir / f"{stem}.pdf"
        counter = 1
        while path.exists():
            path = self.output_dir / f"{stem}_{counter}.pdf"
            counter += 1
        return path


def list_documents(
    output_dir: Path,
    limit: int = 10,
    utc_offset_hours: float = 9.0,
) -> list[SavedDocument]:
    """Return saved PDFs in *output_dir*, newest first."""
    directory = Path(output_dir)
    if not directory.is_dir():
        return []

    tz = timezone(timedelta(hours=utc_offset_hours))
    docs = [
        SavedDocument(
            name=p.name,
            path=p,
            size_bytes=p.stat().st_size,
            modified=datetime.fromtimestamp(p.stat().st_mtime, tz),
        )
        for p in directory.glob("*.pdf")
        if p.is_file()
    ]
    docs.sort(key=lambda d: d.modified, reverse=True)
    return docs[:limit]
