"""Unit tests for pagecapture.reports.pdf."""

from __future__ import annotations

import os
import time
from pathlib import Path

import fitz
import pytest

from conftest import make_png
from pagecapture.exceptions import DocumentAssemblyError
from pagecapture.models.capture import CapturedFrame
from pagecapture.models.ocr import OCRResult
from pagecapture.reports.pdf import DocumentAssembler, list_documents, overlay_font_for
from pagecapture.settings.config import Settings


@pytest.fixture()
def assembler(tmp_path: Path) -> DocumentAssembler:
    return DocumentAssembler(tmp_path / "pdfs", utc_offset_hours=9)


def _frames(*sizes: tuple[int, int]) -> list[CapturedFrame]:
    return [CapturedFrame(make_png(i, size)) for i, size in enumerate(sizes)]


class TestAssemble:
    """Tests for DocumentAssembler.assemble."""

    def test_one_page_per_frame_at_pixel_size(self, assembler) -> None:
        doc = assembler.assemble(_frames((200, 100), (320, 480), (50, 60)))

        assert doc.page_count == 3
        assert doc.path.is_file()
        assert doc.size_bytes == doc.path.stat().st_size
        assert not doc.has_text_layer
        with fitz.open(doc.path) as pdf:
            assert pdf.page_count == 3
            sizes = [(round(p.rect.width), round(p.rect.height)) for p in pdf]
        assert sizes == [(200, 100), (320, 480), (50, 60)]

    def test_filename_and_metadata(self, assembler) -> None:
        doc = assembler.assemble(_frames((100, 100), (100, 100)))

        assert doc.filename.startswith("capture_")
        assert doc.filename.endswith(".pdf")
        assert "_ocr" not in doc.filename
        with fitz.open(doc.path) as pdf:
            meta = pdf.metadata
        assert meta["title"].startswith("Screen Capture - ")
        assert meta["author"] == "pagecapture"
        assert meta["subject"] == "2 pages captured"

    def test_metadata_can_be_skipped(self, assembler) -> None:
        doc = assembler.assemble(_frames((100, 100)), add_metadata=False)
        with fitz.open(doc.path) as pdf:
            assert not pdf.metadata.get("title")

    def test_text_layer_embedded(self, assembler) -> None:
        frames = _frames((300, 200), (300, 200))
        ocr = [OCRResult(text="first page words", confidence=91.0), OCRResult(text="", confidence=0.0)]

        doc = assembler.assemble(frames, ocr, ocr_enabled=True)

        assert doc.has_text_layer
        assert doc.filename.endswith("_ocr.pdf")
        with fitz.open(doc.path) as pdf:
            assert "first page words" in pdf[0].get_text()
            assert pdf[1].get_text().strip() == ""

    def test_text_ignored_when_ocr_disabled(self, assembler) -> None:
        doc = assembler.assemble(_frames((300, 200)), [OCRResult(text="hidden", confidence=90.0)])
        assert not doc.has_text_layer
        with fitz.open(doc.path) as pdf:
            assert "hidden" not in pdf[0].get_text()

    def test_short_ocr_list_tolerated(self, assembler) -> None:
        frames = _frames((300, 200), (300, 200), (300, 200))
        doc = assembler.assemble(frames, [OCRResult(text="only one", confidence=80.0)], ocr_enabled=True)
        assert doc.page_count == 3
        assert doc.has_text_layer

    def test_corrupt_frame_skipped(self, assembler) -> None:
        frames = [CapturedFrame(make_png(1)), CapturedFrame(b"not an image"), CapturedFrame(make_png(2))]

        doc = assembler.assemble(frames)

        assert doc.page_count == 2
        assert doc.skipped_frames == 1

    def test_no_embeddable_frames_raises(self, assembler, tmp_path) -> None:
        with pytest.raises(DocumentAssemblyError):
            assembler.assemble([CapturedFrame(b"garbage")])
        with pytest.raises(DocumentAssemblyError):
            assembler.assemble([])
        assert not (tmp_path / "pdfs").exists() or not list((tmp_path / "pdfs").iterdir())

    def test_failed_text_layer_keeps_image_page(self, assembler, monkeypatch) -> None:
        def _broken_insert_text(self, *args, **kwargs):
            raise RuntimeError("font cannot encode text")

        monkeypatch.setattr(fitz.Page, "insert_text", _broken_insert_text)
        frames = _frames((300, 200), (300, 200))

        doc = assembler.assemble(frames, [OCRResult(text="words", confidence=90.0)], ocr_enabled=True)

        assert doc.page_count == 2
        assert doc.skipped_frames == 0
        assert not doc.has_text_layer

    def test_japanese_text_searchable_with_default_settings(self, tmp_path) -> None:
        settings = Settings()
        font = settings.output.overlay_font or overlay_font_for(settings.ocr.language)
        assembler = DocumentAssembler(tmp_path / "pdfs", font_name=font)

        doc = assembler.assemble(
            _frames((300, 200)), [OCRResult(text="日本語の本文", confidence=88.0)], ocr_enabled=True
        )

        assert doc.has_text_layer
        with fitz.open(doc.path) as pdf:
            assert "日本語の本文" in pdf[0].get_text()

    def test_name_collision_gets_suffix(self, assembler, monkeypatch) -> None:
        monkeypatch.setattr("pagecapture.reports.pdf.filename_timestamp", lambda now: "2026-01-02T03-04-05")

        names = [assembler.assemble(_frames((100, 100))).filename for _ in range(3)]

        assert names == [
            "capture_2026-01-02T03-04-05.pdf",
            "capture_2026-01-02T03-04-05_1.pdf",
            "capture_2026-01-02T03-04-05_2.pdf",
        ]


class TestListDocuments:
    """Tests for list_documents."""

    def test_missing_directory(self, tmp_path) -> None:
        assert list_documents(tmp_path / "nope") == []

    def test_newest_first_with_limit(self, tmp_path) -> None:
        now = time.time()
        for i, name in enumerate(["old.pdf", "middle.pdf", "new.pdf"]):
            path = tmp_path / name
            path.write_bytes(b"%PDF-1.7 " + b"x" * i)
            os.utime(path, (now - 100 + i * 10, now - 100 + i * 10))
        (tmp_path / "notes.txt").write_text("ignored")

        docs = list_documents(tmp_path, limit=2)

        assert [d.name for d in docs] == ["new.pdf", "middle.pdf"]
        assert docs[0].size_bytes == 11
        assert len(docs[0].date) == len("2026-01-01 00:00")


class TestOverlayFont:
    """Tests for overlay_font_for."""

    @pytest.mark.parametrize(
        ("language", "expected"),
        [
            ("jpn+eng", "japan"),
            ("eng+jpn_vert", "japan"),
            ("chi_sim", "china-s"),
            ("chi_tra+eng", "china-t"),
            ("kor", "korea"),
            ("eng", "helv"),
            ("deu+fra", "helv"),
        ],
    )
    def test_font_follows_language(self, language, expected) -> None:
        assert overlay_font_for(language) == expected
