"""Inbound command channel from the in-page controller overlay.

The overlay running inside the captured page posts every button press to a
single exposed binding; the binding turns the payload into an
``OverlayCommand`` and puts it on a ``CommandChannel``. The capture session
consumes the channel from one dispatcher task, so the page's object model
never calls into the session directly.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError

from pagecapture.models.capture import ClipRect

logger = logging.getLogger(__name__)


class OverlayAction(str, Enum):
    """Actions the in-page controller can request."""

    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    TRIM = "trim"
    TRIM_SELECTED = "trim_selected"
    CONTINUE = "continue"


class OverlayCommand(BaseModel):
    """Command posted by the in-page controller."""

    action: OverlayAction
    pages: int | None = None
    area: ClipRect | None = None


class CommandChannel:
    """FIFO of overlay commands awaiting dispatch."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[OverlayCommand] = asyncio.Queue()

    def post(self, command: OverlayCommand) -> None:
        """Enqueue an already-validated command."""
        self._queue.put_nowait(command)

    def post_payload(self, payload: Any) -> bool:
        """Validate a raw payload from the page and enqueue it.

        Returns:
            True if the payload was a valid command, False if it was dropped.
        """
        try:
            command = OverlayCommand.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Dropping invalid overlay command %r: %s", payload, exc)
            return False
        self.post(command)
        return True

    async def get(self) -> OverlayCommand:
        """Wait for the next command."""
        return await self._queue.get()

    def drain(self) -> list[OverlayCommand]:
        """Remove and return all pending commands without waiting."""
        pending: list[OverlayCommand] = []
        while True:
            try:
                pending.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        return pending
