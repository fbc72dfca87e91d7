"""Periodic refresh ticker for callers that keep data on screen.

The library never starts one of these itself; a host (UI session, kiosk,
background task) creates one per thing it wants kept current.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

LIVE_WEATHER_REFRESH_SEC = 5 * 60
CALIMA_REFRESH_SEC = 30 * 60


class PeriodicRefresh:
    """Run an async callback every `interval` seconds until stopped."""

    def __init__(self, callback: Callable[[], Awaitable[Any]], interval: float):
        self.callback = callback
        self.interval = interval
        self.runs = 0
        self._stopped = asyncio.Event()

    async def run(self) -> None:
        """Call the callback, then wait; repeat until stop() or cancellation.

        A failing callback is logged and the loop carries on.
        """
        self._stopped.clear()
        logger.info("Refresh starting with %ss interval", self.interval)

        while not self._stopped.is_set():
            try:
                await self.callback()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Refresh callback error: %s", e, exc_info=True)
            self.runs += 1

            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

        logger.info("Refresh stopped after %d run(s)", self.runs)

    def stop(self) -> None:
        self._stopped.set()
