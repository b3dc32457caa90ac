"""Queued link request models."""

from __future__ import annotations

import enum
import secrets
import time

from pydantic import Field

from pyaircond.models._base import AircondBaseModel


class RequestKind(enum.StrEnum):
    READ = "read"
    WRITE = "write"


class RequestPriority(enum.StrEnum):
    """Dequeue priority; higher ranks are served first."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    RequestPriority.HIGH: 3,
    RequestPriority.NORMAL: 2,
    RequestPriority.LOW: 1,
}


def new_request_id(now: float | None = None) -> str:
    """Return ``req_<epoch ms>_<random hex>``."""
    ms = int((time.time() if now is None else now) * 1000)
    return f"req_{ms}_{secrets.token_hex(4)}"


class Request(AircondBaseModel):
    """One out-of-band read or write waiting for the link."""

    id: str = Field(default_factory=new_request_id)
    device_id: int
    kind: RequestKind
    address: int = Field(alias="register")
    value: int | None = None
    priority: RequestPriority = RequestPriority.NORMAL
    timestamp: float = Field(default_factory=time.time)
    retry_count: int = 0

    @property
    def sort_key(self) -> tuple[int, float]:
        return (-self.priority.rank, self.timestamp)
