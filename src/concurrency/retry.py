# src/concurrency/retry.py — v1
"""Bounded retry at a fixed interval.

Used for backend calls that can fail while the language tooling is still
starting up: the call is re-attempted every ``interval_s`` until
``deadline_s`` has elapsed since the first attempt, then the last failure
propagates unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from copilens.concurrency.cancellation import OperationCancelled

if TYPE_CHECKING:
    from copilens.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-interval retry bounded by a total deadline."""

    interval_s: float = 1.5
    deadline_s: float = 15.0
    retry_on: tuple[type[BaseException], ...] = (Exception,)

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            interval_s=settings.retry_interval_ms / 1000,
            deadline_s=settings.retry_deadline_ms / 1000,
        )


NO_RETRY = RetryPolicy(interval_s=0.0, deadline_s=0.0)


async def retry_until(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    policy: RetryPolicy = RetryPolicy(),
    label: str = "operation",
    **kwargs: Any,
) -> Any:
    """Call `fn` until it succeeds or the policy deadline passes.

    Cancellation is never retried.

    Raises:
        Exception: The failure of the last attempt.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + policy.deadline_s
    attempts = 0

    while True:
        attempts += 1
        try:
            return await fn(*args, **kwargs)
        except OperationCancelled:
            raise
        except policy.retry_on as e:
            remaining = deadline - loop.time()
            if remaining <= 0 or remaining < policy.interval_s:
                logger.debug("%s failed after %d attempts: %r", label, attempts, e)
                raise
            logger.debug(
                "%s failed (attempt %d), retrying in %.2fs: %r",
                label, attempts, policy.interval_s, e,
            )
            await asyncio.sleep(policy.interval_s)
