# src/concurrency/gate.py — v1
"""Throttling and request coalescing in front of the expensive backend.

Two independent mechanisms:

- Admission: a global cap on simultaneous guarded operations plus a
  per-document in-flight flag. Both are checked up front and neither
  queues; a rejected caller gets a GateDecision back and must retry later.
  Per document the state machine is IDLE -> BUSY on acquire and
  BUSY -> IDLE when the guarded operation settles, success or failure.

- Debounce: one pending slot per key holding the latest operation and
  every waiter coalesced into it. A call for a pending key cancels and
  reschedules the timer and replaces the operation (trailing edge,
  last arguments win). When the timer fires, the operation runs once and
  its result or exception is delivered to all waiters.

Failures are never remembered: the next call for the same key runs the
operation again.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Generic, TypeVar

if TYPE_CHECKING:
    from copilens.config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_CONCURRENCY = 3
DEFAULT_DEBOUNCE_WAIT_MS = 3000


class GateDecision(str, Enum):
    GRANTED = "granted"
    BUSY_GLOBAL = "busy-global"
    BUSY_KEY = "busy-this-key"


@dataclass
class GuardedResult(Generic[T]):
    """Outcome of a guarded call: either a value or a capacity rejection."""

    decision: GateDecision
    value: T | None = None

    @property
    def granted(self) -> bool:
        return self.decision is GateDecision.GRANTED


@dataclass
class _PendingSlot:
    operation: Callable[[], Awaitable[Any]]
    waiters: list[asyncio.Future] = field(default_factory=list)
    timer: asyncio.TimerHandle | None = None


class CoalescingScheduler:
    """Trailing-edge, argument-replacing debounce keyed by string."""

    def __init__(self) -> None:
        self._slots: dict[str, _PendingSlot] = {}
        self._running: set[asyncio.Task] = set()

    def is_pending(self, key: str) -> bool:
        return key in self._slots

    def schedule(
        self,
        key: str,
        wait_s: float,
        operation: Callable[[], Awaitable[T]],
    ) -> asyncio.Future[T]:
        """Schedule `operation` for `key`; the returned future settles when it runs."""
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[T] = loop.create_future()
        slot = self._slots.get(key)
        if slot is None:
            slot = _PendingSlot(operation=operation)
            self._slots[key] = slot
        else:
            if slot.timer is not None:
                slot.timer.cancel()
            slot.operation = operation
            logger.debug("Debounced %s (%d waiters)", key, len(slot.waiters) + 1)
        slot.waiters.append(waiter)
        slot.timer = loop.call_later(max(wait_s, 0.0), self._fire, key)
        return waiter

    def cancel_all(self) -> None:
        """Drop every pending slot and cancel running coalesced operations."""
        for slot in self._slots.values():
            if slot.timer is not None:
                slot.timer.cancel()
            for waiter in slot.waiters:
                waiter.cancel()
        self._slots.clear()
        for task in list(self._running):
            task.cancel()

    def _fire(self, key: str) -> None:
        slot = self._slots.pop(key, None)
        if slot is None:
            return
        task = asyncio.get_running_loop().create_task(self._run(key, slot))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self, key: str, slot: _PendingSlot) -> None:
        try:
            result = await slot.operation()
        except asyncio.CancelledError:
            for waiter in slot.waiters:
                waiter.cancel()
            raise
        except Exception as e:
            logger.debug("Coalesced operation for %s failed: %r", key, e)
            for waiter in slot.waiters:
                if not waiter.done():
                    waiter.set_exception(e)
            return
        for waiter in slot.waiters:
            if not waiter.done():
                waiter.set_result(result)


class CoalescingGate:
    """Admission control and debounce for backend calls.

    Args:
        max_concurrency: Simultaneous guarded operations across all documents.
        debounce_wait_ms: Default quiet period for debounce().
    """

    def __init__(
        self,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        debounce_wait_ms: int = DEFAULT_DEBOUNCE_WAIT_MS,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._max_concurrency = max_concurrency
        self._debounce_wait_ms = debounce_wait_ms
        self._in_flight: set[str] = set()
        self._scheduler = CoalescingScheduler()

    @classmethod
    def from_settings(cls, settings: Settings) -> CoalescingGate:
        return cls(
            max_concurrency=settings.max_concurrency,
            debounce_wait_ms=settings.debounce_wait_ms,
        )

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    @property
    def busy(self) -> bool:
        return len(self._in_flight) >= self._max_concurrency

    def is_busy(self, key: str) -> bool:
        return key in self._in_flight

    def try_acquire(self, key: str) -> GateDecision:
        """Admit an operation for `key` or say why not. Never waits."""
        if self.busy:
            return GateDecision.BUSY_GLOBAL
        if key in self._in_flight:
            return GateDecision.BUSY_KEY
        self._in_flight.add(key)
        return GateDecision.GRANTED

    def release(self, key: str) -> None:
        self._in_flight.discard(key)

    async def run_guarded(
        self, key: str, operation: Callable[[], Awaitable[T]]
    ) -> GuardedResult[T]:
        """Run `operation` if admitted; exceptions propagate after release."""
        decision = self.try_acquire(key)
        if decision is not GateDecision.GRANTED:
            logger.info(
                "Rejected %s: %s (%d in flight)", key, decision.value, len(self._in_flight)
            )
            return GuardedResult(decision=decision)
        try:
            return GuardedResult(decision=decision, value=await operation())
        finally:
            self.release(key)

    async def debounce(
        self,
        key: str,
        operation: Callable[[], Awaitable[T]],
        wait_ms: int | None = None,
    ) -> T:
        """Coalesce rapid calls for `key` into one run of the latest operation.

        `wait_ms` comes last because it is optional; it defaults to the
        configured debounce wait. Every coalesced caller receives the result
        of the operation passed by the last call.
        """
        wait = self._debounce_wait_ms if wait_ms is None else wait_ms
        return await self._scheduler.schedule(key, wait / 1000, operation)

    def is_debounce_pending(self, key: str) -> bool:
        return self._scheduler.is_pending(key)

    async def dispose(self) -> None:
        """Cancel pending debounce timers and coalesced operations."""
        self._scheduler.cancel_all()
        self._in_flight.clear()
