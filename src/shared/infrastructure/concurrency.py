"""
Async Coordination Helpers
==========================

Small asyncio primitives shared by the console workflow:

- Debouncer: coalesce bursts of triggers into one call after a quiet period
- RequestFence: per-key request sequencing so stale responses can be discarded
"""

import asyncio
import itertools
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional

from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class Debouncer:
    """
    Runs an async callback once after `delay_seconds` of quiet.

    Every call to `trigger()` cancels the pending run and schedules a new one
    with the latest arguments. `flush()` runs the pending call immediately.
    """

    def __init__(
        self,
        callback: Callable[..., Awaitable[Any]],
        delay_seconds: float = 0.35,
        name: str = "debouncer"
    ):
        self._callback = callback
        self.delay_seconds = delay_seconds
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._pending_args: tuple = ()
        self._pending_kwargs: dict = {}

    @property
    def is_pending(self) -> bool:
        """Check if a call is scheduled but not yet started."""
        return self._task is not None and not self._task.done()

    def trigger(self, *args: Any, **kwargs: Any) -> asyncio.Task:
        """Schedule the callback, replacing any pending call."""
        self.cancel()
        self._pending_args = args
        self._pending_kwargs = kwargs
        self._task = asyncio.get_running_loop().create_task(self._run_after_delay())
        return self._task

    async def flush(self) -> Any:
        """Run a pending call now. Returns None if nothing was pending."""
        if not self.is_pending:
            return None
        self.cancel()
        return await self._invoke()

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run_after_delay(self) -> Any:
        await asyncio.sleep(self.delay_seconds)
        return await self._invoke()

    async def _invoke(self) -> Any:
        try:
            return await self._callback(*self._pending_args, **self._pending_kwargs)
        except Exception as e:
            logger.error(
                "Debounced call failed",
                extra={"debouncer": self.name, "error": str(e)}
            )
            raise


class RequestFence:
    """
    Tracks the latest request token per key.

    Usage:
        token = fence.issue(item_id)
        result = await api.get(item_id)
        if fence.is_latest(item_id, token):
            apply(result)
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest: Dict[Hashable, int] = {}

    def issue(self, key: Hashable) -> int:
        """Issue a new token for `key`, superseding earlier ones."""
        token = next(self._counter)
        self._latest[key] = token
        return token

    def is_latest(self, key: Hashable, token: int) -> bool:
        """Check whether `token` is still the newest for `key`."""
        return self._latest.get(key) == token

    def release(self, key: Hashable, token: int) -> None:
        """Forget `key` once its latest request has completed."""
        if self._latest.get(key) == token:
            del self._latest[key]

    def in_flight(self, key: Hashable) -> bool:
        """Check whether any request for `key` is still outstanding."""
        return key in self._latest
