"""pagecapture — browser-driven page capture into searchable PDF documents."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("pagecapture")
except Exception:
    __version__ = "0.0.0"
