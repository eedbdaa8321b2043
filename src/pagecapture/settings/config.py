"""Configuration loader for pagecapture using Pydantic settings.

Config precedence (highest wins):
  1. CLI flags (where applicable)
  2. Environment variables (PAGECAPTURE_* with __ for nesting)
  3. settings.local.toml
  4. settings.<env>.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = Path(os.getenv("PAGECAPTURE_PROJECT_ROOT", _THIS_DIR.parents[2]))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "PAGECAPTURE_ENV"
DEFAULT_ENV = "local"


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class BrowserSettings(BaseSettings):
    """Playwright browser settings."""

    model_config = SettingsConfigDict(env_prefix="PAGECAPTURE_BROWSER__")

    headless: bool = False
    # 0 = let the window size drive the viewport (user can resize)
    viewport_width: int = 0
    viewport_height: int = 0
    extra_args: list[str] = Field(
        default_factory=lambda: [
            "--start-maximized",
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-gpu-sandbox",
            "--disable-dev-shm-usage",
        ]
    )
    launch_attempts: int = 3
    launch_retry_delay_sec: float = 1.0


class CaptureSettings(BaseSettings):
    """Defaults for a capture run (seed values of ``CaptureConfig``)."""

    model_config = SettingsConfigDict(env_prefix="PAGECAPTURE_CAPTURE__")

    total_pages: int = 100
    delay_sec: float = 5.0
    retry_attempts: int = 3
    retry_delay_sec: float = 1.0
    image_format: str = "png"  # png | jpeg
    jpeg_quality: int = 85
    add_metadata: bool = True
    max_memory_mb: int = 500
    enable_ocr: bool = False
    next_key: str = "ArrowRight"
    # Scroll mode: step size and pace of the auto-scroll, then a wait for
    # lazily loaded content before the full-page capture
    scroll_step_px: int = 100
    scroll_interval_ms: int = 100
    scroll_settle_sec: float = 1.0


class StabilitySettings(BaseSettings):
    """Screen stabilization polling."""

    model_config = SettingsConfigDict(env_prefix="PAGECAPTURE_STABILITY__")

    timeout_sec: float = 5.0
    base_interval_sec: float = 0.3
    max_interval_sec: float = 0.8
    growth: float = 1.3
    required_matches: int = 2
    probe_quality: int = 30


class BatchSettings(BaseSettings):
    """Batch queue processing."""

    model_config = SettingsConfigDict(env_prefix="PAGECAPTURE_BATCH__")

    navigation_timeout_ms: int = 30_000
    settle_delay_sec: float = 2.0
    delay_between_urls_sec: float = 2.0
    output_subdir: str = "batch"


class OutputSettings(BaseSettings):
    """Where and how documents are written."""

    model_config = SettingsConfigDict(env_prefix="PAGECAPTURE_OUTPUT__")

    output_dir: str = "output"
    utc_offset_hours: float = 9.0
    # Empty: chosen from ocr.language (a CJK built-in for jpn/chi/kor)
    overlay_font: str = ""
    history_limit: int = 10


class OCRSettings(BaseSettings):
    """Tesseract OCR configuration."""

    model_config = SettingsConfigDict(env_prefix="PAGECAPTURE_OCR__")

    language: str = "jpn+eng"
    tesseract_cmd: str = ""


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root pagecapture settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="PAGECAPTURE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)
    debug: bool = False

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    capture: CaptureSettings = Field(default_factory=CaptureSettings)
    stability: StabilitySettings = Field(default_factory=StabilitySettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    ocr: OCRSettings = Field(default_factory=OCRSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        defaults = _load_toml(CONFIG_DIR / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(CONFIG_DIR / f"settings.{env_name}.toml")
        local_overrides = _load_toml(CONFIG_DIR / "settings.local.toml")

        # Merge: defaults < env-specific < local < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Normalize relative paths against project_root."""
        if not Path(self.output.output_dir).is_absolute():
            self.output.output_dir = str(self.project_root / self.output.output_dir)
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
