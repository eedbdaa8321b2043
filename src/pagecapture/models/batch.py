"""Batch queue models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class BatchItemStatus(str, Enum):
    """Processing status of a queued URL."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class BatchItemResult(BaseModel):
    """Outcome of processing one queued URL."""

    item_id: int
    url: str
    success: bool
    filename: str = ""
    path: str = ""
    error: str = ""


class BatchItem(BaseModel):
    """A URL waiting in (or processed from) the batch queue."""

    id: int
    url: str
    options: dict[str, Any] = Field(default_factory=dict)
    status: BatchItemStatus = BatchItemStatus.PENDING
    result: BatchItemResult | None = None


class BatchOptions(BaseModel):
    """Per-run batch options. Unset fields fall back to ``[batch]`` settings."""

    delay_between_urls: float | None = Field(default=None, ge=0)
    settle_delay: float | None = Field(default=None, ge=0)
    navigation_timeout_ms: int | None = Field(default=None, gt=0)
    full_page: bool = True


class BatchQueueEntry(BaseModel):
    """Status row for one item in ``BatchStatus.queue``."""

    id: int
    url: str
    status: BatchItemStatus


class BatchStatus(BaseModel):
    """Point-in-time snapshot of the batch processor."""

    is_processing: bool
    total: int
    completed: int
    current: int
    queue: list[BatchQueueEntry] = Field(default_factory=list)
    results: list[BatchItemResult] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)
