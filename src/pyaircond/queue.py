"""Priority backlog of out-of-band link requests."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging

from pyaircond.executor import RequestExecutor
from pyaircond.models.request import Request, RequestKind, RequestPriority

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class QueuedRequest:
    """Handle returned by :meth:`RequestQueue.enqueue`.

    The future resolves to the read value (``int | None``) for reads and to
    the outcome (``bool``) for writes.
    """

    request: Request
    future: asyncio.Future[int | bool | None]

    async def wait(self, timeout: float | None = None) -> int | bool | None:
        """Wait for the result; raises ``TimeoutError`` after *timeout*.

        A request dropped by :meth:`RequestQueue.clear` yields ``None``.
        """
        try:
            return await asyncio.wait_for(asyncio.shield(self.future), timeout)
        except asyncio.CancelledError:
            if self.future.cancelled():
                return None
            raise


class RequestQueue:
    """Requests drained one at a time by a ticking background task.

    On every tick the backlog is ordered by priority (high first) and then
    by enqueue time, and the head is executed through the
    :class:`RequestExecutor`.  A request is processed once and never
    re-enqueued.
    """

    def __init__(self, executor: RequestExecutor, *, tick_interval: float = 0.1) -> None:
        self._executor = executor
        self._tick_interval = tick_interval
        self._pending: list[QueuedRequest] = []
        self._processing = False
        self._task: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def enqueue(
        self,
        device_id: int,
        kind: RequestKind,
        register: int,
        value: int | None = None,
        priority: RequestPriority = RequestPriority.NORMAL,
    ) -> QueuedRequest:
        if kind is RequestKind.WRITE and value is None:
            raise ValueError("write requests need a value")
        request = Request(device_id=device_id, kind=kind, address=register, value=value, priority=priority)
        handle = QueuedRequest(request=request, future=asyncio.get_running_loop().create_future())
        self._pending.append(handle)
        _logger.debug(
            "Queued %s %s register=%s device=%s priority=%s",
            request.id,
            kind,
            register,
            device_id,
            priority,
        )
        return handle

    def peek(self) -> Request | None:
        """Request that would be processed next."""
        if not self._pending:
            return None
        return min(self._pending, key=lambda h: h.request.sort_key).request

    async def process_next(self) -> bool:
        """Process the highest-priority request; ``False`` if nothing ran."""
        if self._processing or not self._pending:
            return False
        self._processing = True
        try:
            self._pending.sort(key=lambda h: h.request.sort_key)
            handle = self._pending.pop(0)
            try:
                result = await self._execute(handle.request)
            except BaseException:
                handle.future.cancel()
                raise
            if not handle.future.done():
                handle.future.set_result(result)
            return True
        finally:
            self._processing = False

    async def _execute(self, request: Request) -> int | bool | None:
        label = f"queued {request.kind} {request.address} ({request.id})"
        if request.kind is RequestKind.READ:
            return await self._executor.read_register(request.device_id, request.address, label)
        assert request.value is not None
        return await self._executor.write_register(request.device_id, request.address, request.value, label)

    async def _run(self) -> None:
        while True:
            try:
                await self.process_next()
            except asyncio.CancelledError:
                raise
            except Exception:
                _logger.exception("Queue tick failed")
            await asyncio.sleep(self._tick_interval)

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="pyaircond-request-queue")
        _logger.debug("Request queue started")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        _logger.debug("Request queue stopped")

    def clear(self) -> int:
        """Drop the backlog and cancel its handles; returns the number dropped."""
        dropped = self._pending
        self._pending = []
        for handle in dropped:
            handle.future.cancel()
        if dropped:
            _logger.info("Cleared %s queued requests", len(dropped))
        return len(dropped)
