"""Unit tests for pagecapture.models — states, capture config and batch models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from pagecapture.models.batch import BatchItemResult, BatchStatus
from pagecapture.models.capture import CaptureConfig, CapturedFrame, ClipRect, ImageFormat
from pagecapture.models.ocr import OCRResult
from pagecapture.models.states import (
    LOOP_STATES,
    RESET_STATE,
    STATE_TRANSITIONS,
    CaptureState,
    can_transition,
)


class TestCaptureState:
    """State machine edges."""

    def test_all_states_have_transitions_entry(self) -> None:
        assert set(STATE_TRANSITIONS) == set(CaptureState)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (CaptureState.IDLE, CaptureState.READY),
            (CaptureState.READY, CaptureState.CAPTURING),
            (CaptureState.CAPTURING, CaptureState.PAUSED),
            (CaptureState.PAUSED, CaptureState.CAPTURING),
            (CaptureState.CAPTURING, CaptureState.COMPLETED),
            (CaptureState.PAUSED, CaptureState.COMPLETED),
        ],
    )
    def test_valid_edges(self, current, target) -> None:
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (CaptureState.IDLE, CaptureState.CAPTURING),
            (CaptureState.READY, CaptureState.PAUSED),
            (CaptureState.COMPLETED, CaptureState.CAPTURING),
            (CaptureState.COMPLETED, CaptureState.READY),
        ],
    )
    def test_invalid_edges(self, current, target) -> None:
        assert not can_transition(current, target)

    def test_reset_reachable_from_everywhere(self) -> None:
        assert RESET_STATE == CaptureState.IDLE
        for state in CaptureState:
            assert can_transition(state, RESET_STATE)

    def test_loop_states(self) -> None:
        assert LOOP_STATES == {CaptureState.CAPTURING, CaptureState.PAUSED}

    def test_string_values(self) -> None:
        assert CaptureState("PAUSED") is CaptureState.PAUSED
        assert CaptureState.READY == "READY"


class TestCaptureConfig:
    """CaptureConfig validation and merging."""

    def test_defaults(self) -> None:
        config = CaptureConfig()
        assert config.total_pages == 100
        assert config.delay == 5.0
        assert config.image_format == ImageFormat.PNG
        assert config.memory_warning_bytes == 500 * 1024 * 1024 * 0.8

    @pytest.mark.parametrize(
        "field,value",
        [("total_pages", 0), ("delay", -1), ("retry_attempts", 0), ("jpeg_quality", 101), ("max_memory_mb", 0)],
    )
    def test_rejects_out_of_range(self, field, value) -> None:
        with pytest.raises(ValidationError):
            CaptureConfig(**{field: value})

    def test_frozen(self) -> None:
        config = CaptureConfig()
        with pytest.raises(ValidationError):
            config.total_pages = 5  # type: ignore[misc]

    def test_merged_ignores_none_and_keeps_original(self) -> None:
        original = CaptureConfig(total_pages=10, delay=2)
        merged = original.merged(total_pages=None, delay=0.5, image_format="jpeg")
        assert merged.total_pages == 10
        assert merged.delay == 0.5
        assert merged.image_format == ImageFormat.JPEG
        assert original.delay == 2

    def test_merged_clear_clip(self) -> None:
        config = CaptureConfig(clip=ClipRect(x=0, y=0, width=10, height=10))
        assert config.merged(clear_clip=True).clip is None
        assert config.merged().clip is not None

    def test_merged_unknown_key(self) -> None:
        with pytest.raises(ValueError, match="Unknown capture setting"):
            CaptureConfig().merged(speed=3)


class TestClipRect:
    def test_parse(self) -> None:
        clip = ClipRect.parse("10, 20, 300,400.5")
        assert clip == ClipRect(x=10, y=20, width=300, height=400.5)
        assert clip.as_playwright() == {"x": 10, "y": 20, "width": 300, "height": 400.5}

    @pytest.mark.parametrize("value", ["1,2,3", "a,b,c,d", "0,0,0,10", "-1,0,10,10"])
    def test_parse_rejects(self, value) -> None:
        with pytest.raises(ValueError):
            ClipRect.parse(value)


class TestFramesAndResults:
    def test_frame_size_and_lossiness(self) -> None:
        frame = CapturedFrame(b"12345", is_lossy=True)
        assert frame.size == 5
        assert ImageFormat.JPEG.is_lossy and not ImageFormat.PNG.is_lossy

    def test_ocr_has_text(self) -> None:
        assert not OCRResult(text="  \n").has_text
        assert OCRResult(text="x").has_text

    def test_batch_status_counts(self) -> None:
        status = BatchStatus(
            is_processing=False,
            total=3,
            completed=3,
            current=3,
            results=[
                BatchItemResult(item_id=1, url="a", success=True, filename="a.png"),
                BatchItemResult(item_id=2, url="b", success=False, error="boom"),
                BatchItemResult(item_id=3, url="c", success=True, filename="c.png"),
            ],
        )
        assert status.succeeded == 2
        assert status.failed == 1
