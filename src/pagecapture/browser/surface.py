"""Browser automation surface — the session's only view of the remote page.

``AutomationSurface`` is the narrow protocol the capture session and batch
processor depend on; ``PlaywrightSurface`` implements it over a headed (or
headless) Chromium driven by Playwright's async API.

NOTE ON PLAYWRIGHT API COMPATIBILITY:
This module uses Playwright's documented patterns:
  - async_playwright().start() → Playwright
  - chromium.launch(...) → Browser
  - context.expose_binding(name, fn) / context.add_init_script(script)
  - page.screenshot(type=..., quality=..., clip=..., full_page=...)
  - page.evaluate(script, arg)

If method signatures change, update this file — the rest of the package
is isolated from Playwright internals through this abstraction.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

from pagecapture.browser.navigation import resilient_goto
from pagecapture.browser.overlay import (
    AUTO_SCROLL_SCRIPT,
    COMMAND_BINDING,
    OVERLAY_SCRIPT,
    RENDER_STATE_SCRIPT,
    SET_VISIBILITY_SCRIPT,
    TRIM_SCRIPT,
)
from pagecapture.models.capture import ClipRect, ImageFormat

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Playwright

    from pagecapture.monitoring.commands import CommandChannel
    from pagecapture.settings.config import BrowserSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class AutomationSurface(Protocol):
    """Primitives the capture engine needs from a remote, scriptable page."""

    @property
    def is_connected(self) -> bool:
        """Whether the underlying browser is still attached."""
        ...

    async def navigate(self, url: str, *, timeout_ms: int = 30_000) -> None:
        """Load *url*, waiting at most *timeout_ms* per wait strategy."""
        ...

    async def screenshot(
        self,
        *,
        image_format: ImageFormat = ImageFormat.PNG,
        quality: int | None = None,
        clip: ClipRect | None = None,
        full_page: bool = False,
    ) -> bytes:
        """Capture the visible page (or *clip*, or the full scroll height)."""
        ...

    async def press_key(self, key: str) -> None:
        """Send a key press to the focused page."""
        ...

    async def bring_to_front(self) -> None:
        """Focus the page so key presses reach it."""
        ...

    async def set_overlay_visible(self, visible: bool) -> None:
        """Show or hide the in-page controller."""
        ...

    async def render_overlay(self, state: str | None = None, count: int | None = None) -> None:
        """Push session state and frame count to the in-page controller."""
        ...

    async def start_trim(self) -> None:
        """Enter interactive area-selection mode."""
        ...

    async def auto_scroll(self, *, step_px: int = 100, interval_ms: int = 100) -> None:
        """Scroll to the bottom of the document in fixed steps."""
        ...

    async def close(self) -> None:
        """Release the browser."""
        ...


# ---------------------------------------------------------------------------
# Playwright implementation
# ---------------------------------------------------------------------------


class PlaywrightSurface:
    """Playwright-backed automation surface with the controller overlay injected.

    Create instances with :meth:`launch`; the constructor only wires
    already-created Playwright objects together.
    """

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._closed = False

    @classmethod
    async def launch(
        cls,
        settings: BrowserSettings,
        commands: CommandChannel,
        on_disconnect: Callable[[], Any],
    ) -> "PlaywrightSurface":
        """Start Chromium, inject the overlay and bind the command channel.

        Args:
            settings: ``[browser]`` settings section.
            commands: Channel the overlay's button presses are posted to.
            on_disconnect: Called (from Playwright's event loop callback) when
                the browser goes away unexpectedly.
        """
        from playwright.async_api import async_playwright

        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(
                headless=settings.headless,
                args=list(settings.extra_args),
            )
            if settings.viewport_width and settings.viewport_height:
                context = await browser.new_context(
                    viewport={"width": settings.viewport_width, "height": settings.viewport_height}
                )
            else:
                context = await browser.new_context(no_viewport=True)

            def _binding(_source: Any, payload: Any) -> None:
                commands.post_payload(payload)

            await context.expose_binding(COMMAND_BINDING, _binding)
            await context.add_init_script(OVERLAY_SCRIPT)
            page = await context.new_page()
        except Exception:
            await playwright.stop()
            raise

        surface = cls(playwright, browser, context, page)
        browser.on("disconnected", lambda _browser: surface._on_disconnected(on_disconnect))
        logger.info("Browser launched (headless=%s)", settings.headless)
        return surface

    def _on_disconnected(self, callback: Callable[[], Any]) -> None:
        if self._closed:
            return
        self._closed = True
        logger.warning("Browser disconnected")
        callback()

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return not self._closed and self._browser.is_connected()

    @property
    def page(self) -> Page:
        return self._page

    async def navigate(self, url: str, *, timeout_ms: int = 30_000) -> None:
        await resilient_goto(self._page, url, timeout_ms=timeout_ms)

    async def screenshot(
        self,
        *,
        image_format: ImageFormat = ImageFormat.PNG,
        quality: int | None = None,
        clip: ClipRect | None = None,
        full_page: bool = False,
    ) -> bytes:
        options: dict[str, Any] = {"type": image_format.value, "full_page": full_page}
        if image_format.is_lossy and quality is not None:
            options["quality"] = quality
        if clip is not None:
            options["clip"] = clip.as_playwright()
        return await self._page.screenshot(**options)

    async def press_key(self, key: str) -> None:
        await self._page.keyboard.press(key)

    async def bring_to_front(self) -> None:
        await self._page.bring_to_front()

    async def set_overlay_visible(self, visible: bool) -> None:
        await self._evaluate_quietly(SET_VISIBILITY_SCRIPT, visible)

    async def render_overlay(self, state: str | None = None, count: int | None = None) -> None:
        await self._evaluate_quietly(RENDER_STATE_SCRIPT, [state, count])

    async def start_trim(self) -> None:
        await self._page.evaluate(TRIM_SCRIPT)

    async def auto_scroll(self, *, step_px: int = 100, interval_ms: int = 100) -> None:
        await self._page.evaluate(AUTO_SCROLL_SCRIPT, [step_px, interval_ms])

    async def close(self) -> None:
        """Shut down the browser cleanly."""
        self._closed = True
        try:
            if self._browser.is_connected():
                await self._context.close()
                await self._browser.close()
        except Exception as e:
            logger.warning("Browser close error (non-fatal): %s", e)
        finally:
            await self._playwright.stop()
        logger.info("Browser closed")

    async def _evaluate_quietly(self, script: str, arg: Any) -> None:
        """Run an overlay script; a mid-navigation page may reject it."""
        if self._page.is_closed():
            return
        try:
            await self._page.evaluate(script, arg)
        except Exception as e:
            logger.debug("Overlay update skipped: %s", e)
