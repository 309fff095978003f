"""Background periodic tasks owned by the component whose state they touch."""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run *callback* every *interval* seconds on the running event loop.

    Each run finishes before the next sleep starts, so the callback never
    overlaps with itself.

    Args:
        name: Human-readable name for logging.
        interval: Seconds between runs.
        callback: Sync or async zero-argument callable.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], object] | Callable[[], Awaitable[object]],
    ) -> None:
        self.name = name
        self.interval = interval
        self._callback = callback
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop. Must be called with a running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"periodic:{self.name}"
        )
        logger.debug("Periodic task '%s' started (every %.0fs)", self.name, self.interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Periodic task '%s' stopped", self.name)

    async def run_once(self) -> None:
        """Invoke the callback once, logging rather than raising on failure."""
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except Exception:  # noqa: BLE001
            logger.exception("Periodic task '%s' failed", self.name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()
