"""pagecapture capture job.

Runs a non-interactive capture as a standalone job (``pagecapture capture
run`` or ``python -m pagecapture.worker.jobs``): launch the browser, load the
URL, capture N pages, and save the PDF.

Environment variables:
    PAGECAPTURE_JOB__URL:    Page to capture (required).
    PAGECAPTURE_JOB__PAGES:  Number of pages (default: ``capture.total_pages``).
    PAGECAPTURE_JOB__DELAY:  Seconds to wait before each capture
                             (default: ``capture.delay_sec``).
    PAGECAPTURE_JOB__OCR:    Add a searchable text layer (default: false).
    PAGECAPTURE_JOB__MODE:   ``pages`` (default) or ``scroll`` for one
                             full-page capture after scrolling to the bottom.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pagecapture.monitoring.event_bus import EventBus
    from pagecapture.reports.pdf import AssembledDocument
    from pagecapture.settings.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


async def run_capture(
    url: str,
    *,
    total_pages: int | None = None,
    delay: float | None = None,
    settings: Settings | None = None,
    bus: EventBus | None = None,
    config_overrides: dict[str, Any] | None = None,
    wait_for_login: bool = False,
    **session_kwargs: Any,
) -> AssembledDocument | None:
    """Capture *total_pages* pages of *url* and save them as one PDF.

    Args:
        url: Page to open before capturing.
        total_pages: Pages to capture (default from settings).
        delay: Seconds to wait before each capture (default from settings).
        settings: Settings to use (default: ``get_settings()``).
        bus: Event bus receiving progress events.
        config_overrides: Extra ``CaptureConfig`` fields (``enable_ocr``,
            ``clip``, ``image_format``, ``next_key``...).
        wait_for_login: Pause after loading until Continue is clicked on
            the overlay.
        **session_kwargs: Passed through to ``CaptureSession``.

    Returns:
        The saved document, or None if no page was captured.
    """
    from pagecapture.capture.session import CaptureSession

    async with CaptureSession(settings, bus=bus, **session_kwargs) as session:
        await session.launch()
        await session.navigate(url)
        if wait_for_login:
            await session.wait_for_continue()
        if config_overrides:
            session.update_config(**config_overrides)
        await session.start_capture(total_pages=total_pages, delay=delay)
        await session.wait_until_finished()
        return await session.stop_and_save()


async def run_scroll(
    url: str,
    *,
    settle: float | None = None,
    settings: Settings | None = None,
    bus: EventBus | None = None,
    config_overrides: dict[str, Any] | None = None,
    wait_for_login: bool = False,
    **session_kwargs: Any,
) -> AssembledDocument | None:
    """Scroll *url* to the bottom and save it as a single full-page PDF.

    Scrolling first lets lazily loaded content render before the capture.
    *settle* overrides ``capture.scroll_settle_sec``.
    """
    from pagecapture.capture.session import CaptureSession

    async with CaptureSession(settings, bus=bus, **session_kwargs) as session:
        await session.launch()
        await session.navigate(url)
        if wait_for_login:
            await session.wait_for_continue()
        if config_overrides:
            session.update_config(**config_overrides)
        await session.capture_scroll(settle=settle)
        return await session.stop_and_save()


async def run_interactive(
    url: str,
    *,
    settings: Settings | None = None,
    bus: EventBus | None = None,
    **session_kwargs: Any,
) -> AssembledDocument | None:
    """Open *url* with the in-page controller and wait for the browser to close.

    Capture is driven from the overlay; its Stop button saves the document.
    Frames still unsaved when the browser closes are saved on the way out.
    """
    from pagecapture.capture.session import CaptureSession

    async with CaptureSession(settings, bus=bus, **session_kwargs) as session:
        await session.launch()
        await session.navigate(url)
        logger.info("Controller ready on %s; close the browser to finish", url)
        await session.wait_disconnected()
        if session.frames:
            return await session.stop_and_save()
        return session.last_document


# ---------------------------------------------------------------------------
# Job entry point
# ---------------------------------------------------------------------------


def main() -> int:
    """Run a capture job configured from ``PAGECAPTURE_JOB__*`` variables.

    Returns:
        Exit code: 0 for success, 1 for failure.
    """
    configure_logging()

    url = os.environ.get("PAGECAPTURE_JOB__URL", "").strip()
    if not url:
        logger.error("PAGECAPTURE_JOB__URL is required")
        return 1

    pages = os.environ.get("PAGECAPTURE_JOB__PAGES", "").strip()
    delay = os.environ.get("PAGECAPTURE_JOB__DELAY", "").strip()
    ocr = os.environ.get("PAGECAPTURE_JOB__OCR", "false").lower() in ("true", "1", "yes")
    mode = os.environ.get("PAGECAPTURE_JOB__MODE", "pages").strip().lower()
    if mode not in ("pages", "scroll"):
        logger.error("Unknown PAGECAPTURE_JOB__MODE: %s", mode)
        return 1

    logger.info(
        "Capture job starting: url=%s mode=%s pages=%s delay=%s ocr=%s",
        url,
        mode,
        pages or "default",
        delay or "default",
        ocr,
    )
    start = time.monotonic()

    try:
        if mode == "scroll":
            job = run_scroll(url, config_overrides={"enable_ocr": ocr})
        else:
            job = run_capture(
                url,
                total_pages=int(pages) if pages else None,
                delay=float(delay) if delay else None,
                config_overrides={"enable_ocr": ocr},
            )
        document = asyncio.run(job)
    except Exception:
        logger.exception("Capture job failed")
        return 1

    elapsed = time.monotonic() - start
    if document is None:
        logger.error("Capture job produced no pages")
        return 1

    summary = {
        "path": str(document.path),
        "pages": document.page_count,
        "size_bytes": document.size_bytes,
        "text_layer": document.has_text_layer,
        "duration_s": round(elapsed, 1),
    }
    print(json.dumps(summary, indent=2))
    logger.info("Capture job completed in %.1fs", elapsed)
    return 0


def configure_logging() -> None:
    """Set up logging for jobs and the CLI.

    Outside local development (``PAGECAPTURE_ENV != local``), emits one JSON
    object per line::

        {"severity": "INFO", "message": "...", "logger": "...", "time": "..."}

    Locally, uses a human-readable plain-text format.
    """
    log_level = os.environ.get("PAGECAPTURE_LOG_LEVEL", "INFO").upper()
    env = os.environ.get("PAGECAPTURE_ENV", "local").strip()

    if env != "local":
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_JsonFormatter())
        logging.root.handlers.clear()
        logging.root.addHandler(handler)
        logging.root.setLevel(getattr(logging, log_level, logging.INFO))
    else:
        logging.basicConfig(
            level=getattr(logging, log_level, logging.INFO),
            format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            stream=sys.stderr,
        )

    # Quieten noisy libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


class _JsonFormatter(logging.Formatter):
    """JSON formatter with a ``severity`` field for log collectors."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


if __name__ == "__main__":
    sys.exit(main())
