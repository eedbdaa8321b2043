"""Unit tests for pagecapture settings.

Covers default loading, TOML profile layering, env var overrides, path
resolution and the capture-config seeding from the ``[capture]`` section.
"""

from __future__ import annotations

import os

from pagecapture.models.capture import CaptureConfig, ImageFormat


class TestSettings:
    """Core settings loading and override mechanics."""

    def test_default_settings_load(self, monkeypatch):
        """Settings should load without any env overrides."""
        monkeypatch.delenv("PAGECAPTURE_ENV", raising=False)
        from pagecapture.settings import get_settings

        s = get_settings()
        assert s.env == "local"
        assert s.capture.total_pages == 100
        assert s.capture.next_key == "ArrowRight"

    def test_get_settings_is_cached(self):
        from pagecapture.settings import get_settings

        assert get_settings() is get_settings()

    def test_env_override(self, monkeypatch):
        """PAGECAPTURE_CAPTURE__DELAY_SEC should override the TOML default."""
        monkeypatch.setenv("PAGECAPTURE_CAPTURE__DELAY_SEC", "1.5")
        from pagecapture.settings.config import Settings

        s = Settings()
        assert s.capture.delay_sec == 1.5

    def test_multiple_section_overrides(self, monkeypatch):
        monkeypatch.setenv("PAGECAPTURE_BROWSER__HEADLESS", "true")
        monkeypatch.setenv("PAGECAPTURE_OCR__LANGUAGE", "eng")
        monkeypatch.setenv("PAGECAPTURE_BATCH__OUTPUT_SUBDIR", "urls")
        from pagecapture.settings.config import Settings

        s = Settings()
        assert s.browser.headless is True
        assert s.ocr.language == "eng"
        assert s.batch.output_subdir == "urls"

    def test_ci_profile(self, monkeypatch):
        """PAGECAPTURE_ENV=ci should layer settings.ci.toml over the defaults."""
        monkeypatch.setenv("PAGECAPTURE_ENV", "ci")
        from pagecapture.settings.config import Settings

        s = Settings()
        assert s.env == "ci"
        assert s.browser.headless is True
        assert s.capture.delay_sec == 0.5
        assert s.batch.delay_between_urls_sec == 0.0
        # untouched keys keep their defaults
        assert s.capture.total_pages == 100

    def test_explicit_values_win(self):
        from pagecapture.settings.config import Settings

        s = Settings(capture={"total_pages": 7})
        assert s.capture.total_pages == 7
        assert s.capture.delay_sec == 5.0

    def test_paths_resolved_relative_to_project_root(self):
        from pagecapture.settings.config import Settings

        s = Settings()
        assert os.path.isabs(s.output.output_dir)
        assert s.output.output_dir.startswith(str(s.project_root))

    def test_absolute_output_dir_untouched(self, tmp_path):
        from pagecapture.settings.config import Settings

        s = Settings(output={"output_dir": str(tmp_path)})
        assert s.output.output_dir == str(tmp_path)


class TestSectionDefaults:
    """Defaults of the individual sections."""

    def test_browser(self):
        from pagecapture.settings.config import Settings

        s = Settings()
        assert s.browser.viewport_width == 0
        assert s.browser.launch_attempts == 3
        assert "--start-maximized" in s.browser.extra_args

    def test_stability(self):
        from pagecapture.settings.config import Settings

        s = Settings()
        assert s.stability.timeout_sec == 5.0
        assert s.stability.base_interval_sec == 0.3
        assert s.stability.max_interval_sec == 0.8
        assert s.stability.growth == 1.3
        assert s.stability.required_matches == 2

    def test_output_and_ocr(self):
        from pagecapture.settings.config import Settings

        s = Settings()
        assert s.output.utc_offset_hours == 9.0
        assert s.output.history_limit == 10
        assert s.ocr.language == "jpn+eng"
        assert s.ocr.tesseract_cmd == ""


class TestCaptureConfigSeed:
    """CaptureConfig built from the ``[capture]`` section."""

    def test_from_settings(self, monkeypatch):
        monkeypatch.setenv("PAGECAPTURE_CAPTURE__IMAGE_FORMAT", "jpeg")
        from pagecapture.settings.config import Settings

        config = CaptureConfig.from_settings(Settings().capture)
        assert config.image_format == ImageFormat.JPEG
        assert config.delay == 5.0
        assert config.retry_attempts == 3
        assert config.clip is None
