"""pagecapture batch capture job.

Captures a full-page screenshot of every URL in a manifest. Runs via
``pagecapture batch run`` or ``python -m pagecapture.worker.batch_jobs``.

Manifest formats:

* text: one URL per line, ``#`` starts a comment line;
* json: an array of URL strings or objects::

    [
        "https://example.com/a",
        {"url": "https://example.com/b", "options": {"settle_delay": 5}}
    ]

Environment variables:
    PAGECAPTURE_JOB__MANIFEST:  Path to the manifest file (required).
    PAGECAPTURE_JOB__FORMAT:    ``text``, ``json`` or ``auto`` (default: auto,
                                by file extension).
    PAGECAPTURE_JOB__DELAY:     Seconds between URLs (default:
                                ``batch.delay_between_urls_sec``).
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pagecapture.models.batch import BatchOptions, BatchStatus
    from pagecapture.monitoring.event_bus import EventBus
    from pagecapture.settings.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Manifest loading
# ---------------------------------------------------------------------------


def load_manifest(manifest_path: str | Path, fmt: str = "auto") -> list[dict[str, Any]]:
    """Load a batch manifest from a local file.

    Args:
        manifest_path: Path to a text or JSON manifest.
        fmt: ``text``, ``json`` or ``auto`` (``.json`` files are JSON).

    Returns:
        List of entries, each with ``url`` and ``options`` keys.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the manifest is malformed or has no entries.
    """
    path = Path(manifest_path)
    if not path.is_file():
        raise FileNotFoundError(f"Manifest file not found: {path}")

    raw = path.read_text(encoding="utf-8")
    if fmt == "auto":
        fmt = "json" if path.suffix.lower() == ".json" else "text"

    if fmt == "json":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Manifest is not valid JSON: {exc}") from exc
    elif fmt == "text":
        data = [
            line.strip()
            for line in raw.splitlines()
            if line.strip() and not line.strip().startswith("#")
        ]
    else:
        raise ValueError(f"Unknown manifest format: {fmt}")

    return _validate_manifest(data)


def _validate_manifest(data: Any) -> list[dict[str, Any]]:
    """Normalise entries to ``{url, options}`` and drop invalid ones."""
    if not isinstance(data, list) or not data:
        raise ValueError("Manifest must be a non-empty list of URLs")

    valid_entries: list[dict[str, Any]] = []
    for i, entry in enumerate(data):
        if isinstance(entry, str):
            entry = {"url": entry}
        if not isinstance(entry, dict):
            logger.warning("Manifest entry %d is not a URL or object — skipping", i)
            continue
        url = str(entry.get("url", "")).strip()
        if not url:
            logger.warning("Manifest entry %d has no URL — skipping", i)
            continue
        options = entry.get("options") or {}
        if not isinstance(options, dict):
            logger.warning("Manifest entry %d has non-object options — ignoring them", i)
            options = {}
        valid_entries.append({"url": url, "options": options})

    if not valid_entries:
        raise ValueError("Manifest contains no valid entries (each must have a 'url')")

    return valid_entries


# ---------------------------------------------------------------------------
# Batch execution
# ---------------------------------------------------------------------------


async def run_batch(
    manifest: list[dict[str, Any]],
    *,
    options: BatchOptions | None = None,
    settings: Settings | None = None,
    bus: EventBus | None = None,
    **session_kwargs: Any,
) -> BatchStatus:
    """Launch a browser and capture every manifest entry in order.

    Args:
        manifest: Entries from :func:`load_manifest`.
        options: Run options (delays, timeouts, full-page).
        settings: Settings to use (default: ``get_settings()``).
        bus: Event bus receiving batch events.
        **session_kwargs: Passed through to ``CaptureSession``.

    Returns:
        Final batch status with per-item results.
    """
    from pagecapture.capture.batch import BatchProcessor
    from pagecapture.capture.session import CaptureSession

    async with CaptureSession(settings, bus=bus, **session_kwargs) as session:
        await session.launch()
        processor = BatchProcessor(session, settings=settings)
        await processor.add_to_queue(manifest)
        logger.info("Batch starting: %d URLs", len(manifest))
        status = await processor.start_processing(options)

    logger.info(
        "Batch complete: %d total, %d succeeded, %d failed",
        status.total,
        status.succeeded,
        status.failed,
    )
    return status


# ---------------------------------------------------------------------------
# Job entry point
# ---------------------------------------------------------------------------


def main() -> int:
    """Run a batch capture job.

    Returns:
        Exit code: 0 if every URL succeeded, 1 for partial/full failure.
    """
    from pagecapture.models.batch import BatchOptions
    from pagecapture.worker.jobs import configure_logging

    configure_logging()

    manifest_path = os.environ.get("PAGECAPTURE_JOB__MANIFEST", "").strip()
    if not manifest_path:
        logger.error("PAGECAPTURE_JOB__MANIFEST is required")
        return 1

    fmt = os.environ.get("PAGECAPTURE_JOB__FORMAT", "auto").strip().lower()
    delay = os.environ.get("PAGECAPTURE_JOB__DELAY", "").strip()

    logger.info("Batch job starting: manifest=%s", manifest_path)

    try:
        manifest = load_manifest(manifest_path, fmt)
    except (FileNotFoundError, ValueError) as e:
        logger.error("Failed to load manifest: %s", e)
        return 1

    options = BatchOptions(delay_between_urls=float(delay) if delay else None)
    try:
        status = asyncio.run(run_batch(manifest, options=options))
    except Exception:
        logger.exception("Batch job failed")
        return 1

    summary = {
        "total": status.total,
        "succeeded": status.succeeded,
        "failed": status.failed,
        "results": [r.model_dump() for r in status.results],
    }
    print(json.dumps(summary, indent=2, default=str))

    if status.failed > 0:
        logger.warning("Batch had %d failures out of %d", status.failed, status.total)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
