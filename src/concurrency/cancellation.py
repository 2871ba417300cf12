# src/concurrency/cancellation.py — v1
"""External cancellation signal for backend calls.

Cancellation races the operation against the token: whichever settles
first wins. The operation itself keeps running to completion, so a call
cancelled after the backend already answered may still have produced a
valid cache entry.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationCancelled(Exception):
    """The caller cancelled the operation before it settled."""


class CancelToken:
    """One-shot cancellation flag that can be awaited."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], object]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if self._event.is_set():
            return
        self._event.set()
        for cb in self._callbacks:
            try:
                cb()
            except Exception:
                logger.exception("Cancellation callback failed")
        self._callbacks.clear()

    def on_cancelled(self, callback: Callable[[], object]) -> None:
        if self._event.is_set():
            callback()
        else:
            self._callbacks.append(callback)

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled()


_background: set[asyncio.Future] = set()


def _drain(task: asyncio.Future) -> None:
    _background.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Operation finished after cancellation with %r", exc)


async def race_cancellation(operation: Awaitable[T], token: CancelToken | None) -> T:
    """Await `operation` unless `token` fires first.

    Raises:
        OperationCancelled: If the token was cancelled before the operation settled.
    """
    if token is None:
        return await operation
    if token.is_cancelled:
        if asyncio.iscoroutine(operation):
            operation.close()
        raise OperationCancelled()

    op_task = asyncio.ensure_future(operation)
    cancel_task = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait(
            {op_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        op_task.cancel()
        cancel_task.cancel()
        raise
    if op_task in done:
        cancel_task.cancel()
        return op_task.result()

    # the operation keeps running and may still populate a cache
    _background.add(op_task)
    op_task.add_done_callback(_drain)
    raise OperationCancelled()
