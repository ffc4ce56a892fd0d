"""
Crash supervision for worker loops.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

from enrollbot.config.logging import get_logger
from enrollbot.config.settings import Settings
from enrollbot.v1.infra.queue.models import WorkerPhase, WorkerRuntimeState

logger = get_logger(__name__)


class SupervisedWorker(Protocol):
    """Anything with runtime state and a loop coroutine."""

    name: str
    state: WorkerRuntimeState

    async def run(self) -> None: ...


class WorkerSupervisor:
    """
    Restarts a crashed worker loop with capped backoff.

    The n-th consecutive crash waits worker_restart_delays_ms[min(n, len - 1)].
    A loop that stayed up for at least worker_restart_reset_window_s before
    crashing starts again from the first delay.
    """

    def __init__(
        self,
        worker: SupervisedWorker,
        settings: Settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.worker = worker
        self.delays_ms = list(settings.worker_restart_delays_ms)
        self.reset_window_s = settings.worker_restart_reset_window_s
        self._sleep = sleep
        self._clock = clock

    def next_delay_ms(self) -> int:
        index = min(self.worker.state.restart_count, len(self.delays_ms) - 1)
        return self.delays_ms[index]

    async def run(self) -> None:
        state = self.worker.state

        while state.running:
            state.started_at = self._clock()

            try:
                await self.worker.run()
                return
            except Exception as e:
                uptime = self._clock() - state.started_at
                if uptime >= self.reset_window_s and state.restart_count:
                    logger.info(
                        "Restart counter reset after sustained uptime",
                        worker=self.worker.name,
                        uptime_s=round(uptime, 3),
                        previous_restart_count=state.restart_count,
                    )
                    state.restart_count = 0

                delay_ms = self.next_delay_ms()
                logger.error(
                    f"{self.worker.name} worker crashed, restarting in {delay_ms}ms",
                    worker=self.worker.name,
                    restart_count=state.restart_count,
                    delay_ms=delay_ms,
                    error=str(e),
                    exc_info=True,
                )
                state.restart_count += 1
                state.phase = WorkerPhase.STOPPED

                await self._sleep(delay_ms / 1000)

        state.phase = WorkerPhase.STOPPED
