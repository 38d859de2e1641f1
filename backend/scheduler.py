"""Per-monitor periodic scheduling"""
import asyncio
import logging
from typing import Optional, Set

from models import LocalIdentity, MonitorDefinition
from monitors import BaseMonitor

logger = logging.getLogger("NetProbe.Scheduler")


class Scheduler:
    """
    Fires one probe per tick for a single monitor definition.

    Ticks follow a fixed cadence on the event loop clock. Every tick spawns a
    detached task that the loop never waits for, so a slow or hung probe does
    not delay the next tick and probes of the same monitor may overlap.

    Opt-in deviations:
    - max_in_flight: when that many probes are still running, the tick is skipped.
    - stop_event: when set, no further ticks are issued and run() returns.
      Without one the loop runs until the process is terminated.
    """

    def __init__(
        self,
        definition: MonitorDefinition,
        monitor: BaseMonitor,
        identity: LocalIdentity,
        sink,
        stop_event: Optional[asyncio.Event] = None,
        max_in_flight: Optional[int] = None,
    ):
        self.definition = definition
        self.monitor = monitor
        self.identity = identity
        self.sink = sink
        self.stop_event = stop_event or asyncio.Event()
        self.max_in_flight = max_in_flight
        self.in_flight: Set[asyncio.Task] = set()
        self.tick_count = 0
        self.skipped_ticks = 0

    async def run(self):
        # Read once: definitions never change while running
        interval = self.definition.interval
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + interval

        logger.info(f"Scheduling {self.definition.display_name} ({self.definition.type}) every {self.definition.interval_ms}ms")

        while not self.stop_event.is_set():
            delay = max(0.0, next_tick - loop.time())
            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass

            self.tick()
            next_tick += interval
            # Drop ticks missed while the loop was stalled instead of bursting
            while next_tick <= loop.time():
                next_tick += interval

        logger.info(f"Scheduler for {self.definition.display_name} stopped")

    def tick(self):
        self.tick_count += 1

        if self.max_in_flight is not None and len(self.in_flight) >= self.max_in_flight:
            self.skipped_ticks += 1
            logger.debug(f"Skipping tick for {self.definition.display_name}: {len(self.in_flight)} probes in flight")
            return

        task = asyncio.create_task(self.monitor.check(self.definition, self.identity, self.sink))
        self.in_flight.add(task)
        task.add_done_callback(self._probe_done)

    def _probe_done(self, task: asyncio.Task):
        self.in_flight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            # Executors turn probe failures into outcomes; anything here is a bug
            logger.error(f"Probe for {self.definition.display_name} raised unexpectedly: {error!r}")

    async def wait_in_flight(self):
        """Wait for probes that were already spawned (used on graceful shutdown)"""
        if self.in_flight:
            await asyncio.gather(*self.in_flight, return_exceptions=True)
