"""OCR adapters producing per-frame text for the searchable PDF layer."""

from pagecapture.ocr.tesseract import OCREngine, TesseractOCR

__all__ = ["OCREngine", "TesseractOCR"]
