"""pagecapture test configuration — shared fixtures for unit and integration tests."""

from __future__ import annotations

import asyncio
import io
from pathlib import Path
from typing import Any, Callable

import pytest
from PIL import Image

from pagecapture.browser.stability import StabilityDetector
from pagecapture.models.capture import ClipRect, ImageFormat


# ---------------------------------------------------------------------------
# Async backend
# ---------------------------------------------------------------------------


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear the settings LRU cache between tests."""
    from pagecapture.settings.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def test_settings(tmp_path: Path):
    """Settings with zero delays and output under ``tmp_path``."""
    from pagecapture.settings.config import Settings

    return Settings(
        browser={"launch_attempts": 2, "launch_retry_delay_sec": 0},
        capture={"delay_sec": 0, "retry_delay_sec": 0, "total_pages": 3, "scroll_settle_sec": 0},
        batch={"settle_delay_sec": 0, "delay_between_urls_sec": 0},
        output={"output_dir": str(tmp_path / "output"), "utc_offset_hours": 9},
    )


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


def make_png(index: int = 0, size: tuple[int, int] = (200, 100)) -> bytes:
    """Return a solid-colour PNG whose bytes differ per *index*."""
    colour = ((index * 47) % 256, (index * 91 + 60) % 256, 150)
    buffer = io.BytesIO()
    Image.new("RGB", size, colour).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture()
def png_factory() -> Callable[..., bytes]:
    return make_png


# ---------------------------------------------------------------------------
# Fake automation surface
# ---------------------------------------------------------------------------


class FakeSurface:
    """Scripted ``AutomationSurface`` test double.

    Page *n* is shown until the next-page key is pressed. JPEG screenshots
    taken while the overlay is visible are stability probes; everything else
    counts as a capture. Failures can be injected for captures, key presses
    and specific URLs.
    """

    def __init__(
        self,
        pages: list[bytes] | None = None,
        *,
        fail_captures: int = 0,
        fail_keys: int = 0,
        fail_urls: set[str] | None = None,
        always_fail_captures: bool = False,
    ) -> None:
        self.pages = pages or [make_png(i) for i in range(10)]
        self.index = 0
        self.connected = True
        self.closed = False
        self.overlay_visible = True
        self.fail_captures = fail_captures
        self.fail_keys = fail_keys
        self.fail_urls = fail_urls or set()
        self.always_fail_captures = always_fail_captures

        self.captures: list[dict[str, Any]] = []
        self.probes = 0
        self.key_presses: list[str] = []
        self.navigations: list[tuple[str, int]] = []
        self.renders: list[tuple[str | None, int | None]] = []
        self.visibility: list[bool] = []
        self.trim_started = 0
        self.scrolls: list[tuple[int, int]] = []

        self.commands: Any = None
        self.on_disconnect: Callable[[], Any] | None = None
        self.after_capture: Callable[[int], Any] | None = None

    @property
    def is_connected(self) -> bool:
        return self.connected

    @property
    def current_page(self) -> bytes:
        return self.pages[min(self.index, len(self.pages) - 1)]

    async def navigate(self, url: str, *, timeout_ms: int = 30_000) -> None:
        from pagecapture.exceptions import NavigationError

        self.navigations.append((url, timeout_ms))
        if url in self.fail_urls:
            raise NavigationError(url, "name not resolved")

    async def screenshot(
        self,
        *,
        image_format: ImageFormat = ImageFormat.PNG,
        quality: int | None = None,
        clip: ClipRect | None = None,
        full_page: bool = False,
    ) -> bytes:
        if self.overlay_visible and image_format == ImageFormat.JPEG:
            self.probes += 1
            return self.current_page

        if self.always_fail_captures or self.fail_captures > 0:
            self.fail_captures -= 1
            raise RuntimeError("screenshot failed")
        self.captures.append(
            {"format": image_format, "quality": quality, "clip": clip, "full_page": full_page}
        )
        image = self.current_page
        if self.after_capture is not None:
            result = self.after_capture(len(self.captures))
            if hasattr(result, "__await__"):
                await result
        return image

    async def press_key(self, key: str) -> None:
        if self.fail_keys > 0:
            self.fail_keys -= 1
            raise RuntimeError("key press failed")
        self.key_presses.append(key)
        self.index += 1

    async def bring_to_front(self) -> None:
        pass

    async def set_overlay_visible(self, visible: bool) -> None:
        self.visibility.append(visible)
        self.overlay_visible = visible

    async def render_overlay(self, state: str | None = None, count: int | None = None) -> None:
        self.renders.append((state, count))

    async def start_trim(self) -> None:
        self.trim_started += 1

    async def auto_scroll(self, *, step_px: int = 100, interval_ms: int = 100) -> None:
        self.scrolls.append((step_px, interval_ms))

    async def close(self) -> None:
        self.closed = True
        self.connected = False

    def disconnect(self) -> None:
        """Simulate the browser going away."""
        self.connected = False
        if self.on_disconnect is not None:
            self.on_disconnect()


def surface_factory_for(surface: FakeSurface) -> Callable[..., Any]:
    """Return a ``CaptureSession`` surface factory that hands out *surface*."""

    async def _factory(browser_settings: Any, commands: Any, on_disconnect: Callable[[], Any]) -> FakeSurface:
        surface.commands = commands
        surface.on_disconnect = on_disconnect
        return surface

    return _factory


async def eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until *predicate* holds or *timeout* passes."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def fast_stability() -> StabilityDetector:
    """Detector that polls without sleeping and settles on the first match."""
    return StabilityDetector(timeout=0.5, base_interval=0.0, max_interval=0.0, required_matches=1)


@pytest.fixture()
def fake_surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture()
def make_session(test_settings):
    """Factory building a ``CaptureSession`` wired to a ``FakeSurface``."""
    from pagecapture.capture.session import CaptureSession
    from pagecapture.monitoring.event_bus import EventBus, InMemorySink

    def _make(surface: FakeSurface | None = None, **kwargs: Any):
        surface = surface or FakeSurface()
        sink = InMemorySink()
        bus = kwargs.pop("bus", None) or EventBus(session_id="test")
        bus.add_sink(sink)
        kwargs.setdefault("stability", fast_stability())
        session = CaptureSession(
            test_settings,
            bus=bus,
            surface_factory=surface_factory_for(surface),
            **kwargs,
        )
        return session, surface, sink

    return _make


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that exercise several modules end to end")
    config.addinivalue_line("markers", "slow: marks tests that take more than a few seconds")
