"""Unit tests for pagecapture.utils."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from pagecapture.utils import (
    filename_timestamp,
    format_bytes,
    format_error,
    local_now,
    slugify_url,
)


class TestFormatBytes:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [(0, "0 B"), (-5, "0 B"), (512, "512 B"), (1536, "1.5 KB"), (5 * 1024 * 1024, "5 MB")],
    )
    def test_values(self, size, expected) -> None:
        assert format_bytes(size) == expected

    def test_gigabytes(self) -> None:
        assert format_bytes(3 * 1024**3) == "3 GB"


class TestFilenames:
    def test_slugify_url(self) -> None:
        assert slugify_url("https://example.com/a/b?c=1") == "example_com_a_b_c_1"
        assert len(slugify_url("http://" + "x" * 200)) == 50

    def test_filename_timestamp(self) -> None:
        moment = datetime(2026, 3, 4, 5, 6, 7)
        assert filename_timestamp(moment) == "2026-03-04T05-06-07"

    def test_local_now_offset(self) -> None:
        now = local_now(9)
        assert now.utcoffset() == timedelta(hours=9)
        assert abs(now - datetime.now(timezone.utc)) < timedelta(seconds=5)


class TestFormatError:
    def test_message_and_stack(self) -> None:
        try:
            raise RuntimeError("screen went away")
        except RuntimeError as exc:
            err = format_error(exc)
        assert err["message"] == "screen went away"
        assert "RuntimeError" in err["stack"]
        assert "T" in err["timestamp"]

    def test_empty_message_uses_type(self) -> None:
        assert format_error(KeyError())["message"] == "KeyError"
