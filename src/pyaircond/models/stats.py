"""Link statistics and diagnostics models."""

from __future__ import annotations

from datetime import datetime

from pyaircond.models._base import AircondBaseModel
from pyaircond.models.request import Request


class LinkStats(AircondBaseModel):
    """Snapshot of the link counters.

    ``success_rate`` is a percentage in ``0..100``; ``0`` before any request.
    """

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    device_conflicts: int = 0
    timeout_errors: int = 0
    connection_errors: int = 0
    average_response_time: float = 0.0
    last_request_time: datetime | None = None
    success_rate: float = 0.0


class MasterStats(LinkStats):
    """Counters plus link and queue state, as served on ``/stats``."""

    queue_length: int = 0
    current_device: int | None = None
    is_processing: bool = False
    is_polling: bool = False
    connection_status: bool = False


class ConnectionDiagnostics(AircondBaseModel):
    is_connected: bool
    current_device: int | None
    is_switching: bool


class QueueDiagnostics(AircondBaseModel):
    length: int
    is_processing: bool
    next_request: Request | None = None


class PerformanceDiagnostics(AircondBaseModel):
    success_rate: float
    average_response_time: float
    last_request_time: datetime | None = None


class ErrorDiagnostics(AircondBaseModel):
    total_errors: int
    connection_errors: int
    timeout_errors: int
    device_conflicts: int


class NetworkDiagnostics(AircondBaseModel):
    """Health summary served on ``/diagnostics``."""

    connection: ConnectionDiagnostics
    queue: QueueDiagnostics
    performance: PerformanceDiagnostics
    errors: ErrorDiagnostics
