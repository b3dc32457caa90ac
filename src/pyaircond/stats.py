"""Link request statistics."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from pyaircond.models.stats import LinkStats


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StatsCollector:
    """Monotonic counters for link requests.

    Counters only grow; :meth:`reset` is the explicit operator action that
    clears them.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or _utcnow
        self.reset()

    def reset(self) -> None:
        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self.device_conflicts = 0
        self.timeout_errors = 0
        self.connection_errors = 0
        self._response_time_total = 0.0
        self.last_request_time: datetime | None = None

    def record(self, success: bool, response_time: float = 0.0) -> None:
        """Count one attempt; *response_time* in seconds, successes only."""
        self.total_requests += 1
        self.last_request_time = self._clock()
        if success:
            self.successful_requests += 1
            self._response_time_total += response_time
        else:
            self.failed_requests += 1

    def record_conflict(self) -> None:
        self.device_conflicts += 1

    def record_timeout(self) -> None:
        self.timeout_errors += 1

    def record_connection_error(self) -> None:
        self.connection_errors += 1

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests * 100

    @property
    def average_response_time(self) -> float:
        if self.successful_requests == 0:
            return 0.0
        return self._response_time_total / self.successful_requests

    def snapshot(self) -> LinkStats:
        return LinkStats(
            total_requests=self.total_requests,
            successful_requests=self.successful_requests,
            failed_requests=self.failed_requests,
            device_conflicts=self.device_conflicts,
            timeout_errors=self.timeout_errors,
            connection_errors=self.connection_errors,
            average_response_time=self.average_response_time,
            last_request_time=self.last_request_time,
            success_rate=self.success_rate,
        )
