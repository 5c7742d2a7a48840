import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

WARNING_SECONDS = 300
CRITICAL_SECONDS = 60


class AssessmentTimer:
    """Whole-second countdown for a timed assessment.

    Runs as an asyncio task once started. ``on_time_up`` is awaited exactly
    once when the countdown reaches zero. Pausing only stops the local
    countdown; the server keeps no timer.
    """

    def __init__(
        self,
        time_limit_minutes: int,
        on_time_up: Callable[[], Awaitable[None]],
        tick_seconds: float = 1.0,
    ):
        self.total_seconds = int(time_limit_minutes * 60)
        self.remaining = self.total_seconds
        self.paused = False
        self._on_time_up = on_time_up
        self._tick_seconds = tick_seconds
        self._task: Optional[asyncio.Task] = None
        self._fired = False

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while self.remaining > 0:
            await asyncio.sleep(self._tick_seconds)
            if not self.paused:
                self.remaining -= 1
        if not self._fired:
            self._fired = True
            logger.info("Assessment time is up")
            await self._on_time_up()

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def toggle_pause(self) -> None:
        self.paused = not self.paused

    def stop(self) -> None:
        # Cancelling from inside on_time_up would cancel the caller
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def progress_percentage(self) -> float:
        if self.total_seconds <= 0:
            return 0.0
        return (self.total_seconds - self.remaining) / self.total_seconds * 100

    @property
    def is_warning(self) -> bool:
        return self.remaining < WARNING_SECONDS

    @property
    def is_critical(self) -> bool:
        return self.remaining < CRITICAL_SECONDS

    @property
    def formatted(self) -> str:
        minutes, seconds = divmod(max(self.remaining, 0), 60)
        return f"{minutes:02d}:{seconds:02d}"
