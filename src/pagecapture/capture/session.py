"""Capture session — the stateful controller behind a capture run.

A ``CaptureSession`` owns one browser attachment, the active
``CaptureConfig``, the captured frames and the ``CaptureState``. Every
operation is validated against the state machine in
``pagecapture.models.states``; state changes are published on the event bus
as ``state_changed`` events.

Lifecycle::

    async with CaptureSession(settings) as session:
        await session.launch()
        await session.navigate("https://reader.example.com/book/1")
        await session.start_capture(total_pages=120, delay=2.0)
        await session.wait_until_finished()
        document = await session.stop_and_save()

The in-page controller overlay talks to the session through a
``CommandChannel``; a dispatcher task started by :meth:`launch` turns each
overlay command into the matching session operation.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable

from pagecapture.browser.retry import retry_async
from pagecapture.browser.stability import StabilityDetector
from pagecapture.browser.surface import AutomationSurface, PlaywrightSurface
from pagecapture.exceptions import (
    BrowserLaunchError,
    BrowserNotConnectedError,
    CaptureStateError,
    SurfaceBusyError,
)
from pagecapture.models.capture import CaptureConfig, CapturedFrame, ClipRect, ImageFormat
from pagecapture.models.ocr import OCRResult
from pagecapture.models.states import LOOP_STATES, RESET_STATE, CaptureState, can_transition
from pagecapture.monitoring.commands import CommandChannel, OverlayAction, OverlayCommand
from pagecapture.monitoring.event_bus import EventBus, EventType
from pagecapture.ocr.tesseract import OCREngine, TesseractOCR
from pagecapture.reports.pdf import AssembledDocument, DocumentAssembler, overlay_font_for
from pagecapture.settings.config import BrowserSettings, Settings, get_settings
from pagecapture.utils import format_bytes, format_error

logger = logging.getLogger(__name__)

SurfaceFactory = Callable[[BrowserSettings, CommandChannel, Callable[[], Any]], Awaitable[AutomationSurface]]


class CaptureSession:
    """Stateful capture controller for a single browser attachment.

    Args:
        settings: Application settings (default: ``get_settings()``).
        bus: Event bus for progress and state events (default: a new bus).
        surface_factory: Coroutine creating the automation surface; receives
            the browser settings, the command channel and the disconnect
            callback. Defaults to ``PlaywrightSurface.launch``.
        assembler: PDF assembler (default: built from ``[output]`` settings).
        ocr_engine: OCR engine used when ``enable_ocr`` is set (default: a
            ``TesseractOCR`` created on first use).
        stability: Stabilization detector (default: from ``[stability]``).
        config: Initial capture config (default: from ``[capture]``).
        session_id: Identifier attached to emitted events.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        bus: EventBus | None = None,
        surface_factory: SurfaceFactory | None = None,
        assembler: DocumentAssembler | None = None,
        ocr_engine: OCREngine | None = None,
        stability: StabilityDetector | None = None,
        config: CaptureConfig | None = None,
        session_id: str = "",
    ) -> None:
        self._settings = settings or get_settings()
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.bus = bus or EventBus(session_id=self.session_id)

        out = self._settings.output
        stab = self._settings.stability
        self._surface_factory: SurfaceFactory = surface_factory or PlaywrightSurface.launch
        self._assembler = assembler or DocumentAssembler(
            Path(out.output_dir),
            utc_offset_hours=out.utc_offset_hours,
            font_name=out.overlay_font or overlay_font_for(self._settings.ocr.language),
        )
        self._ocr_engine = ocr_engine
        self._stability = stability or StabilityDetector(
            timeout=stab.timeout_sec,
            base_interval=stab.base_interval_sec,
            max_interval=stab.max_interval_sec,
            growth=stab.growth,
            required_matches=stab.required_matches,
        )
        self._config = config or CaptureConfig.from_settings(self._settings.capture)

        self.commands = CommandChannel()
        self.surface_lock = asyncio.Lock()
        self.last_document: AssembledDocument | None = None

        self._state = CaptureState.IDLE
        self._surface: AutomationSurface | None = None
        # Surfaces whose browser disconnected; closed by the disconnect
        # announcement, the next launch or dispose.
        self._detached: list[AutomationSurface] = []
        self._frames: list[CapturedFrame] = []
        self._memory_bytes = 0
        self._memory_warned = False

        # Loop control: _active is the cooperative cancel flag, _stop_event
        # wakes cancellable sleeps, _resume_gate is cleared while paused.
        self._active = False
        self._stop_event = asyncio.Event()
        self._resume_gate = asyncio.Event()
        self._resume_gate.set()
        self._disconnected = asyncio.Event()
        self._continue_event = asyncio.Event()

        self._loop_task: asyncio.Task[None] | None = None
        self._dispatcher_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def config(self) -> CaptureConfig:
        return self._config

    @property
    def frames(self) -> tuple[CapturedFrame, ...]:
        return tuple(self._frames)

    @property
    def memory_bytes(self) -> int:
        return self._memory_bytes

    @property
    def is_connected(self) -> bool:
        return self._surface is not None and self._surface.is_connected

    @property
    def is_capturing(self) -> bool:
        """True while a capture loop task is running."""
        return self._loop_task is not None and not self._loop_task.done()

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "CaptureSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.dispose()

    # ------------------------------------------------------------------
    # Browser attachment
    # ------------------------------------------------------------------

    async def launch(self) -> None:
        """Attach a browser surface and move to READY.

        Idempotent while connected: a connected session in IDLE (after a
        save or a fatal loop error) is re-armed to READY so capture can
        continue.

        Raises:
            BrowserLaunchError: If the surface cannot be created after
                ``browser.launch_attempts`` tries.
        """
        if self.is_connected:
            if self._state == CaptureState.IDLE:
                await self._transition(CaptureState.READY)
            else:
                logger.info("Browser already connected (state=%s)", self._state.value)
            return

        await self._close_detached()
        browser_cfg = self._settings.browser
        self._disconnected.clear()
        try:
            self._surface = await retry_async(
                lambda: self._surface_factory(browser_cfg, self.commands, self._on_disconnect),
                attempts=browser_cfg.launch_attempts,
                delay=browser_cfg.launch_retry_delay_sec,
                on_retry=self._retry_observer("Browser launch", browser_cfg.launch_attempts),
            )
        except Exception as exc:
            logger.exception("Browser launch failed")
            err = format_error(exc)
            await self.bus.emit(
                EventType.ERROR,
                {"message": err["message"], "stack": err["stack"], "recoverable": False},
            )
            raise BrowserLaunchError(f"Failed to launch browser: {err['message']}") from exc

        self._start_dispatcher()
        await self._transition(CaptureState.READY)
        await self._log("Browser launched")

    async def navigate(self, url: str, *, timeout_ms: int | None = None) -> None:
        """Load *url* on the attached surface."""
        timeout = timeout_ms or self._settings.batch.navigation_timeout_ms
        async with self.borrow_surface() as surface:
            await surface.navigate(url, timeout_ms=timeout)
        await self._log(f"Navigated to {url}")

    @asynccontextmanager
    async def borrow_surface(self) -> AsyncIterator[AutomationSurface]:
        """Hold the surface exclusively for a non-capture operation.

        Raises:
            SurfaceBusyError: While a capture loop owns the surface.
            BrowserNotConnectedError: If no surface is attached.
        """
        if self.is_capturing:
            raise SurfaceBusyError()
        surface = self._require_surface()
        async with self.surface_lock:
            if self.is_capturing:
                raise SurfaceBusyError()
            yield surface

    async def wait_disconnected(self) -> None:
        """Block until the browser goes away (user closed it or it crashed)."""
        await self._disconnected.wait()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def update_config(self, **changes: Any) -> CaptureConfig:
        """Validate and atomically swap the capture configuration.

        ``None`` values are ignored; pass ``clear_clip=True`` to remove the
        clip region. A running loop picks the new config up on its next
        iteration.

        Raises:
            ValueError: On unknown keys or invalid values.
        """
        self._config = self._config.merged(**changes)
        logger.debug("Capture config updated: %s", self._config.model_dump(mode="json"))
        return self._config

    async def start_trim(self) -> None:
        """Ask the page to run its interactive area selection."""
        surface = self._require_surface()
        await surface.start_trim()
        await self._log("Select the capture area on the page")

    async def set_clip(self, area: ClipRect | None) -> None:
        """Set (or clear, with None) the capture clip region."""
        if area is None:
            self.update_config(clear_clip=True)
        else:
            self.update_config(clip=area)
        await self.bus.emit(
            EventType.TRIM_SET, {"area": area.model_dump() if area is not None else None}
        )

    # ------------------------------------------------------------------
    # Capture control
    # ------------------------------------------------------------------

    async def start_capture(self, total_pages: int | None = None, delay: float | None = None) -> None:
        """Start the capture loop in the background.

        Frames retained from an interrupted run are kept; the loop continues
        from the current frame count.

        Raises:
            BrowserNotConnectedError: If no surface is attached.
            CaptureStateError: Unless the session is READY with no loop active.
        """
        self._require_surface()
        if self._state != CaptureState.READY or self.is_capturing:
            raise CaptureStateError("start capture", self._state.value)

        config = self.update_config(total_pages=total_pages, delay=delay)
        self._active = True
        self._stop_event.clear()
        self._resume_gate.set()
        await self._transition(CaptureState.CAPTURING)
        await self._log(
            f"Starting capture. Total: {config.total_pages}, Delay: {config.delay}s"
            + (f", resuming at page {len(self._frames) + 1}" if self._frames else "")
        )
        self._loop_task = asyncio.create_task(self._capture_loop(), name=f"capture-{self.session_id}")

    async def wait_for_continue(self) -> None:
        """Block until the user confirms the page is ready to capture.

        Used for content behind a login: the overlay shows a Continue button
        that posts the ``continue`` command (see :meth:`continue_capture`).

        Raises:
            BrowserNotConnectedError: If no surface is attached, or the
                browser goes away while waiting.
        """
        self._require_surface()
        self._continue_event.clear()
        await self._render(state="WAITING")
        await self._log('Waiting for login... Log in, then click "Continue" on the page.')

        waiters = {
            asyncio.ensure_future(self._continue_event.wait()),
            asyncio.ensure_future(self._disconnected.wait()),
        }
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

        if not self._continue_event.is_set():
            raise BrowserNotConnectedError("Browser closed while waiting to continue")
        await self._render(state=self._state.value)
        await self._log("Resuming capture process...")

    def continue_capture(self) -> None:
        """Release a pending :meth:`wait_for_continue`."""
        self._continue_event.set()

    async def capture_scroll(self, settle: float | None = None) -> None:
        """Scroll to the bottom of the page and capture it as one full-page frame.

        Runs from READY and ends in COMPLETED like a paginated run; the frame
        is written by :meth:`stop_and_save`.

        Args:
            settle: Seconds to wait after scrolling for lazily loaded content
                (default: ``capture.scroll_settle_sec``).

        Raises:
            BrowserNotConnectedError: If no surface is attached.
            CaptureStateError: Unless the session is READY with no loop active.
        """
        surface = self._require_surface()
        if self._state != CaptureState.READY or self.is_capturing:
            raise CaptureStateError("start scroll capture", self._state.value)

        cap = self._settings.capture
        config = self._config
        page_no = len(self._frames) + 1
        self._active = True
        self._stop_event.clear()
        await self._transition(CaptureState.CAPTURING)
        await self._log("Starting scroll capture...")
        try:
            async with self.surface_lock:
                await surface.bring_to_front()
                await surface.auto_scroll(step_px=cap.scroll_step_px, interval_ms=cap.scroll_interval_ms)
                await self._sleep(cap.scroll_settle_sec if settle is None else settle)
                if not self._active:
                    logger.info("Scroll capture cancelled")
                    return
                image = await self._grab_frame(surface, config, full_page=True)
        except Exception as exc:
            await self._fail(exc, page_no)
            raise

        await self._append_frame(image, config)
        self._active = False
        await self._transition(CaptureState.COMPLETED)
        await self._log("Finished scroll capture")
        await self.bus.emit(EventType.COMPLETED, {"count": len(self._frames)})

    async def wait_until_finished(self) -> None:
        """Wait for the current capture loop (if any) to exit."""
        task = self._loop_task
        if task is not None:
            await asyncio.wait({task})

    async def pause_capture(self) -> None:
        if self._state != CaptureState.CAPTURING:
            logger.info("Ignoring pause while %s", self._state.value)
            return
        self._resume_gate.clear()
        await self._transition(CaptureState.PAUSED)
        await self._log("Capture paused")

    async def resume_capture(self) -> None:
        if self._state != CaptureState.PAUSED:
            logger.info("Ignoring resume while %s", self._state.value)
            return
        await self._transition(CaptureState.CAPTURING)
        self._resume_gate.set()
        await self._log("Capture resumed")

    async def stop_and_save(self) -> AssembledDocument | None:
        """Stop any running loop and write the captured frames to a PDF.

        Returns:
            The assembled document, or None when there was nothing to save.

        Raises:
            DocumentAssemblyError: If the document could not be written. The
                frames are kept so the save can be retried.
        """
        self._request_stop()
        await self.wait_until_finished()

        if self._state in LOOP_STATES:
            await self._transition(CaptureState.COMPLETED)

        if not self._frames:
            await self._log("No frames captured, nothing to save")
            await self._transition(RESET_STATE)
            return None

        config = self._config
        await self._log(f"Saving {len(self._frames)} pages...")
        try:
            ocr_results = await self._run_ocr() if config.enable_ocr else None
            document = await asyncio.to_thread(
                self._assembler.assemble,
                list(self._frames),
                ocr_results,
                add_metadata=config.add_metadata,
                ocr_enabled=config.enable_ocr,
            )
        except Exception as exc:
            logger.exception("Failed to save document")
            err = format_error(exc)
            await self.bus.emit(
                EventType.ERROR,
                {"message": f"Save failed: {err['message']}", "stack": err["stack"], "recoverable": True},
            )
            await self._transition(RESET_STATE)
            raise
        finally:
            await self._release_ocr()

        self._frames.clear()
        self._memory_bytes = 0
        self._memory_warned = False
        self.last_document = document
        await self._log(f"PDF saved: {document.filename} ({document.page_count} pages)")
        await self._transition(RESET_STATE)
        return document

    async def dispose(self) -> None:
        """Stop everything, close the browser and reset to IDLE."""
        self._request_stop()
        task = self._loop_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

        dispatcher, self._dispatcher_task = self._dispatcher_task, None
        if dispatcher is not None and not dispatcher.done():
            dispatcher.cancel()
        dropped = self.commands.drain()
        if dropped:
            logger.info("Discarding %d unhandled overlay commands", len(dropped))
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        await self._close_detached()

        surface, self._surface = self._surface, None
        if surface is not None:
            await surface.close()
        self._disconnected.set()
        await self._transition(RESET_STATE)

    def snapshot(self) -> dict[str, Any]:
        """Return the session state for status displays."""
        return {
            "session_id": self.session_id,
            "state": self._state.value,
            "connected": self.is_connected,
            "capturing": self.is_capturing,
            "frame_count": len(self._frames),
            "memory_bytes": self._memory_bytes,
            "memory": format_bytes(self._memory_bytes),
            "config": self._config.model_dump(mode="json"),
        }

    # ------------------------------------------------------------------
    # Overlay commands
    # ------------------------------------------------------------------

    async def handle_command(self, command: OverlayCommand) -> None:
        """Apply one command from the in-page controller."""
        action = command.action
        if action == OverlayAction.START:
            if self._state == CaptureState.IDLE and self.is_connected:
                await self.launch()
            await self.start_capture(total_pages=command.pages)
        elif action == OverlayAction.PAUSE:
            await self.pause_capture()
        elif action == OverlayAction.RESUME:
            await self.resume_capture()
        elif action == OverlayAction.STOP:
            await self.stop_and_save()
        elif action == OverlayAction.TRIM:
            await self.start_trim()
        elif action == OverlayAction.CONTINUE:
            self.continue_capture()
        elif action == OverlayAction.TRIM_SELECTED:
            if command.area is None:
                logger.warning("trim_selected without an area, ignoring")
                return
            await self.set_clip(command.area)

    def _start_dispatcher(self) -> None:
        if self._dispatcher_task is None or self._dispatcher_task.done():
            self._dispatcher_task = asyncio.create_task(
                self._dispatch_commands(), name=f"commands-{self.session_id}"
            )

    async def _dispatch_commands(self) -> None:
        while True:
            command = await self.commands.get()
            logger.debug("Overlay command: %s", command.action.value)
            try:
                await self.handle_command(command)
            except (CaptureStateError, BrowserNotConnectedError) as exc:
                logger.warning("Overlay command %s rejected: %s", command.action.value, exc)
                await self.bus.emit(EventType.ERROR, {"message": str(exc), "recoverable": True})
            except Exception:
                # Save failures and the like have already been reported.
                logger.exception("Overlay command %s failed", command.action.value)

    # ------------------------------------------------------------------
    # Capture loop
    # ------------------------------------------------------------------

    async def _capture_loop(self) -> None:
        previous: bytes | None = None

        while True:
            config = self._config
            if len(self._frames) >= config.total_pages:
                break
            if not self._active:
                logger.info("Capture loop cancelled at %d frames", len(self._frames))
                return
            if not self._resume_gate.is_set():
                await self._resume_gate.wait()
                continue

            surface = self._surface
            if surface is None:
                return

            page_no = len(self._frames) + 1
            await self._log(f"Capturing page {page_no}...")
            try:
                async with self.surface_lock:
                    image = await self._capture_page(surface, config, page_no, previous)
            except Exception as exc:
                if not self._active:
                    logger.info("Capture loop interrupted on page %d: %s", page_no, exc)
                    return
                await self._fail(exc, page_no)
                return
            if image is None:
                return
            previous = image

        if self._active:
            self._active = False
            await self._transition(CaptureState.COMPLETED)
            await self._log("Finished capture sequence")
            await self.bus.emit(EventType.COMPLETED, {"count": len(self._frames)})

    async def _capture_page(
        self,
        surface: AutomationSurface,
        config: CaptureConfig,
        page_no: int,
        previous: bytes | None,
    ) -> bytes | None:
        """Capture one page and advance; return the image, or None if stopped."""
        await surface.bring_to_front()
        await self._sleep(config.delay)
        if not self._active:
            return None

        probe_quality = self._settings.stability.probe_quality
        await self._stability.wait_for_stable(
            lambda: surface.screenshot(image_format=ImageFormat.JPEG, quality=probe_quality, clip=config.clip),
            is_active=lambda: self._active,
        )
        if not self._active:
            return None

        image = await self._grab_frame(surface, config)
        if previous is not None and image == previous:
            await self._log(f"Page {page_no} is identical to the previous page (kept)")

        await self._append_frame(image, config)

        await retry_async(
            lambda: surface.press_key(config.next_key),
            attempts=config.retry_attempts,
            delay=config.retry_delay,
            on_retry=self._retry_observer("Page advance", config.retry_attempts),
        )
        return image

    async def _grab_frame(
        self, surface: AutomationSurface, config: CaptureConfig, *, full_page: bool = False
    ) -> bytes:
        """Screenshot with the overlay hidden; the overlay is restored even on failure."""
        quality = config.jpeg_quality if config.image_format.is_lossy else None
        clip = None if full_page else config.clip
        await surface.set_overlay_visible(False)
        try:
            return await retry_async(
                lambda: surface.screenshot(
                    image_format=config.image_format, quality=quality, clip=clip, full_page=full_page
                ),
                attempts=config.retry_attempts,
                delay=config.retry_delay,
                on_retry=self._retry_observer("Screenshot", config.retry_attempts),
            )
        finally:
            await surface.set_overlay_visible(True)

    async def _append_frame(self, image: bytes, config: CaptureConfig) -> None:
        self._frames.append(CapturedFrame(image, is_lossy=config.image_format.is_lossy))
        self._track_memory(len(image), config)
        count = len(self._frames)
        await self.bus.emit(EventType.PROGRESS, {"count": count})
        await self._render(count=count)
        if self._memory_warning_due(config):
            await self._log(
                f"Warning: memory usage {format_bytes(self._memory_bytes)} "
                f"approaching limit ({config.max_memory_mb}MB)"
            )

    async def _fail(self, exc: Exception, page_no: int) -> None:
        logger.error("Capture loop failed on page %d", page_no, exc_info=exc)
        self._active = False
        err = format_error(exc)
        await self.bus.emit(
            EventType.ERROR,
            {"message": err["message"], "stack": err["stack"], "recoverable": False, "page": page_no},
        )
        await self._transition(RESET_STATE)

    def _track_memory(self, size: int, config: CaptureConfig) -> None:
        self._memory_bytes += size
        if self._memory_bytes <= config.memory_warning_bytes:
            self._memory_warned = False

    def _memory_warning_due(self, config: CaptureConfig) -> bool:
        if self._memory_bytes > config.memory_warning_bytes and not self._memory_warned:
            self._memory_warned = True
            return True
        return False

    async def _sleep(self, seconds: float) -> None:
        """Sleep that returns early when a stop is requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _request_stop(self) -> None:
        self._active = False
        self._stop_event.set()
        self._resume_gate.set()

    # ------------------------------------------------------------------
    # OCR
    # ------------------------------------------------------------------

    async def _run_ocr(self) -> list[OCRResult] | None:
        if self._ocr_engine is None:
            ocr_cfg = self._settings.ocr
            self._ocr_engine = TesseractOCR(language=ocr_cfg.language, tesseract_cmd=ocr_cfg.tesseract_cmd)
        await self._log(f"Running OCR on {len(self._frames)} pages...")
        try:
            return await self._ocr_engine.process_frames(self._frames)
        except Exception as exc:
            logger.warning("OCR failed, saving without text layer: %s", exc)
            await self._log(f"OCR failed, continuing without text: {exc}")
            return None

    async def _release_ocr(self) -> None:
        if self._ocr_engine is None:
            return
        try:
            await self._ocr_engine.terminate()
        except Exception as exc:
            logger.warning("OCR engine terminate failed: %s", exc)

    # ------------------------------------------------------------------
    # State, events, surface helpers
    # ------------------------------------------------------------------

    async def _transition(self, new_state: CaptureState) -> None:
        old_state = self._state
        if new_state == old_state:
            return
        if not can_transition(old_state, new_state):
            raise CaptureStateError(f"move to {new_state.value}", old_state.value)
        logger.info("State: %s → %s", old_state.value, new_state.value)
        self._state = new_state
        await self.bus.emit(
            EventType.STATE_CHANGED, {"old_state": old_state.value, "new_state": new_state.value}
        )
        await self._render(state=new_state.value, count=len(self._frames))

    def _on_disconnect(self) -> None:
        """Surface callback: the browser went away underneath us."""
        surface, self._surface = self._surface, None
        if surface is not None:
            self._detached.append(surface)
        self._request_stop()
        self._disconnected.set()
        old_state = self._state
        self._state = RESET_STATE
        task = asyncio.get_running_loop().create_task(self._announce_disconnect(old_state))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _announce_disconnect(self, old_state: CaptureState) -> None:
        logger.warning("Browser disconnected (was %s, %d frames kept)", old_state.value, len(self._frames))
        if old_state != RESET_STATE:
            await self.bus.emit(
                EventType.STATE_CHANGED, {"old_state": old_state.value, "new_state": RESET_STATE.value}
            )
        await self.bus.emit(EventType.ERROR, {"message": "Browser disconnected", "recoverable": True})
        await self._close_detached()

    async def _close_detached(self) -> None:
        while self._detached:
            surface = self._detached.pop()
            try:
                await surface.close()
            except Exception as exc:
                logger.warning("Closing disconnected browser failed: %s", exc)

    def _require_surface(self) -> AutomationSurface:
        if self._surface is None or not self._surface.is_connected:
            raise BrowserNotConnectedError()
        return self._surface

    async def _render(self, state: str | None = None, count: int | None = None) -> None:
        surface = self._surface
        if surface is not None and surface.is_connected:
            await surface.render_overlay(state, count)

    async def _log(self, message: str) -> None:
        logger.info(message)
        await self.bus.emit(EventType.LOG, {"message": message})

    def _retry_observer(self, what: str, attempts: int) -> Callable[[int, Exception], Awaitable[None]]:
        async def _observer(attempt: int, exc: Exception) -> None:
            await self._log(f"{what} failed (attempt {attempt}/{attempts}): {exc}. Retrying...")

        return _observer
