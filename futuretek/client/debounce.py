import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class Debouncer:
    """Run ``callback`` with the latest arguments once ``delay`` seconds pass without a new push.

    Fired callbacks run as fire-and-forget tasks; their failures are logged,
    never raised. ``flush()`` runs a pending call immediately.
    """

    def __init__(self, delay: float, callback: Callable[..., Awaitable[Any]]):
        self.delay = delay
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._args: Tuple = ()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def push(self, *args) -> None:
        self._args = args
        if self._handle is not None:
            self._handle.cancel()
        self._handle = asyncio.get_running_loop().call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._invoke(self._args))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _invoke(self, args: Tuple) -> None:
        try:
            await self._callback(*args)
        except Exception as e:
            logger.warning(f"Debounced call failed: {e}")

    async def flush(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None
        await self._invoke(self._args)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks))
