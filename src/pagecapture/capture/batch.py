"""Batch queue processor — capture a list of URLs one after another.

Each queued URL is loaded on the session's browser surface and captured as
a single full-page PNG under ``<output_dir>/batch/``. Items run strictly in
enqueue order; a failing item is marked ``failed`` and the run moves on.

Usage::

    processor = BatchProcessor(session)
    await processor.add_to_queue(["https://a.example", {"url": "https://b.example"}])
    status = await processor.start_processing()
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from pathlib import Path
from typing import Any, Iterable, Mapping

from pagecapture.capture.session import CaptureSession
from pagecapture.exceptions import BatchBusyError, EmptyQueueError
from pagecapture.models.batch import (
    BatchItem,
    BatchItemResult,
    BatchItemStatus,
    BatchOptions,
    BatchQueueEntry,
    BatchStatus,
)
from pagecapture.models.capture import ImageFormat
from pagecapture.monitoring.event_bus import EventBus, EventType
from pagecapture.settings.config import Settings, get_settings
from pagecapture.utils import slugify_url

logger = logging.getLogger(__name__)


class BatchProcessor:
    """Sequential URL capture queue bound to one ``CaptureSession``.

    Args:
        session: Session whose browser surface is borrowed for each item.
        bus: Event bus for ``batch_progress``/``batch_complete`` (default:
            the session's bus).
        settings: Application settings (default: ``get_settings()``).
        output_dir: Where screenshots are written (default:
            ``<output.output_dir>/<batch.output_subdir>``).
    """

    def __init__(
        self,
        session: CaptureSession,
        bus: EventBus | None = None,
        settings: Settings | None = None,
        output_dir: Path | None = None,
    ) -> None:
        self._session = session
        self.bus = bus or session.bus
        self._settings = settings or get_settings()
        self.output_dir = Path(
            output_dir or Path(self._settings.output.output_dir) / self._settings.batch.output_subdir
        )

        self._queue: list[BatchItem] = []
        self._results: list[BatchItemResult] = []
        self._ids = itertools.count(1)
        self._current = 0
        self._processing = False
        self._stop = asyncio.Event()
        self._task: asyncio.Task[BatchStatus] | None = None

    @property
    def is_processing(self) -> bool:
        return self._processing

    # ------------------------------------------------------------------
    # Queue management
    # ------------------------------------------------------------------

    async def add_to_queue(self, items: Iterable[str | Mapping[str, Any]]) -> list[int]:
        """Append URLs (strings or ``{url, options}`` mappings) as pending items.

        Safe while processing: the running pass picks the new items up.

        Returns:
            The ids assigned to the new items, in order.
        """
        new_items: list[BatchItem] = []
        for item in items:
            if isinstance(item, str):
                url, options = item, {}
            else:
                url, options = str(item["url"]), dict(item.get("options") or {})
            new_items.append(BatchItem(id=next(self._ids), url=url, options=options))

        self._queue.extend(new_items)
        logger.info("Queued %d URL(s), %d total", len(new_items), len(self._queue))
        await self._emit_progress()
        return [i.id for i in new_items]

    def clear_queue(self) -> None:
        """Remove all items and results.

        Raises:
            BatchBusyError: While processing; the queue is left untouched.
        """
        if self._processing:
            raise BatchBusyError("Cannot clear queue while processing")
        self._queue = []
        self._results = []
        self._current = 0

    def get_status(self) -> BatchStatus:
        return BatchStatus(
            is_processing=self._processing,
            total=len(self._queue),
            completed=len(self._results),
            current=self._current,
            queue=[BatchQueueEntry(id=i.id, url=i.url, status=i.status) for i in self._queue],
            results=list(self._results),
        )

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def start_processing(self, options: BatchOptions | None = None) -> BatchStatus:
        """Process the whole queue and return the final status.

        Raises:
            BatchBusyError: If a run is already in progress.
            EmptyQueueError: If there is nothing to process.
        """
        self._begin()
        return await self._run(options or BatchOptions())

    def start_in_background(self, options: BatchOptions | None = None) -> asyncio.Task[BatchStatus]:
        """Like :meth:`start_processing` but returns the running task."""
        self._begin()
        self._task = asyncio.create_task(self._run(options or BatchOptions()), name="batch-run")
        return self._task

    async def wait_until_finished(self) -> BatchStatus:
        if self._task is not None:
            await asyncio.wait({self._task})
        return self.get_status()

    def stop_processing(self) -> None:
        """Request a cooperative stop; checked between items."""
        if self._processing:
            self._stop.set()
            logger.info("[Batch] Stopping batch processing...")

    def _begin(self) -> None:
        if self._processing:
            raise BatchBusyError("Already processing")
        if not self._queue:
            raise EmptyQueueError()
        self._processing = True
        self._stop.clear()

    async def _run(self, options: BatchOptions) -> BatchStatus:
        batch_cfg = self._settings.batch
        delay = options.delay_between_urls
        if delay is None:
            delay = batch_cfg.delay_between_urls_sec

        self._results = []
        self._current = 0
        for item in self._queue:
            item.status = BatchItemStatus.PENDING
            item.result = None

        try:
            await self._log(f"Starting batch processing of {len(self._queue)} URLs...")
            index = 0
            while index < len(self._queue):
                if self._stop.is_set():
                    await self._log("Batch processing cancelled.")
                    break
                self._current = index + 1
                await self._process_item(self._queue[index], options)
                index += 1
                if index < len(self._queue):
                    if self._stop.is_set():
                        await self._log("Batch processing cancelled.")
                        break
                    await self._sleep(delay)
        finally:
            self._processing = False

        status = self.get_status()
        await self._log(f"Batch processing complete. {status.succeeded}/{status.total} succeeded.")
        await self.bus.emit(EventType.BATCH_COMPLETE, {"status": status.model_dump(mode="json")})
        return status

    async def _process_item(self, item: BatchItem, options: BatchOptions) -> None:
        batch_cfg = self._settings.batch
        timeout_ms = options.navigation_timeout_ms or batch_cfg.navigation_timeout_ms
        settle = item.options.get("settle_delay", options.settle_delay)
        if settle is None:
            settle = batch_cfg.settle_delay_sec
        full_page = bool(item.options.get("full_page", options.full_page))

        item.status = BatchItemStatus.PROCESSING
        await self._emit_progress()
        await self._log(f"[{self._current}/{len(self._queue)}] Processing: {item.url}")

        try:
            async with self._session.borrow_surface() as surface:
                await surface.navigate(item.url, timeout_ms=timeout_ms)
                await asyncio.sleep(float(settle))
                image = await surface.screenshot(image_format=ImageFormat.PNG, full_page=full_page)
            filename = f"batch_{int(time.time() * 1000)}_{slugify_url(item.url)}.png"
            path = self.output_dir / filename
            await asyncio.to_thread(_write_file, path, image)
        except Exception as exc:
            logger.error("Batch item %d (%s) failed", item.id, item.url, exc_info=exc)
            result = BatchItemResult(
                item_id=item.id, url=item.url, success=False, error=str(exc) or type(exc).__name__
            )
            item.status = BatchItemStatus.FAILED
            await self._log(f"✗ Failed: {item.url} - {result.error}")
        else:
            result = BatchItemResult(
                item_id=item.id, url=item.url, success=True, filename=filename, path=str(path)
            )
            item.status = BatchItemStatus.COMPLETED
            await self._log(f"✓ Saved: {filename}")

        item.result = result
        self._results.append(result)
        await self._emit_progress()

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _emit_progress(self) -> None:
        status = self.get_status()
        await self.bus.emit(
            EventType.BATCH_PROGRESS,
            {"current": status.current, "total": status.total, "status": status.model_dump(mode="json")},
        )

    async def _log(self, message: str) -> None:
        logger.info("[Batch] %s", message)
        await self.bus.emit(EventType.LOG, {"message": f"[Batch] {message}"})


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
