"""Cosmetic progress estimation while an upload request is in flight."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ProgressSimulator:
    """Advance an estimated percentage on a fixed interval.

    The estimate is purely advisory: it knows nothing about the request it
    accompanies and is stopped by whoever owns that request. ``on_tick``
    receives each new value; values never decrease and never pass ``cap``.
    """

    def __init__(
        self,
        on_tick: Callable[[int], None],
        interval: float = 0.2,
        step: int = 10,
        cap: int = 90,
    ) -> None:
        self._on_tick = on_tick
        self.interval = interval
        self.step = step
        self.cap = cap
        self.value = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, initial: int = 0) -> None:
        self.stop()
        self.value = initial
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            new_value = min(self.value + self.step, self.cap)
            if new_value == self.value:
                continue
            self.value = new_value
            logger.debug(f"Simulated upload progress {self.value}%")
            self._on_tick(self.value)
