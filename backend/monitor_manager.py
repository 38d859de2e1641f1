import asyncio
import logging
from typing import Callable, Dict, List, Optional

from models import ConfigFile, PORT_MONITOR, WEB_MONITOR, SSL_MONITOR
from monitors import BaseMonitor, PortMonitor, WebMonitor, SslMonitor
from scheduler import Scheduler

logger = logging.getLogger("NetProbe.MonitorManager")

MONITOR_TYPES: Dict[str, Callable[[], BaseMonitor]] = {
    PORT_MONITOR: PortMonitor,
    WEB_MONITOR: WebMonitor,
    SSL_MONITOR: SslMonitor,
}


class MonitorManager:
    """
    Owns one Scheduler per configured monitor and keeps them running.

    run_loop() only returns once every scheduler has returned, which without a
    stop event never happens: the process runs until it is terminated.
    """

    def __init__(
        self,
        config: ConfigFile,
        sink,
        stop_event: Optional[asyncio.Event] = None,
        max_in_flight: Optional[int] = None,
        monitor_types: Optional[Dict[str, Callable[[], BaseMonitor]]] = None,
    ):
        self.config = config
        self.sink = sink
        self.stop_event = stop_event or asyncio.Event()
        self.max_in_flight = max_in_flight
        self.monitor_types = monitor_types if monitor_types is not None else MONITOR_TYPES
        self.schedulers: List[Scheduler] = []
        self.running = False

    def build_schedulers(self) -> List[Scheduler]:
        schedulers = []
        for definition in self.config.monitors:
            factory = self.monitor_types.get(definition.type)
            if factory is None:
                logger.warning(f"Type not known or implemented: {definition.type} (monitor '{definition.display_name}' skipped)")
                continue
            schedulers.append(Scheduler(
                definition,
                factory(),
                self.config.local,
                self.sink,
                stop_event=self.stop_event,
                max_in_flight=self.max_in_flight,
            ))
        self.schedulers = schedulers
        return schedulers

    async def run_loop(self):
        self.running = True
        await self.sink.start()

        schedulers = self.build_schedulers()
        logger.info(f"Starting {len(schedulers)} monitors")

        try:
            # Counting barrier: satisfied only when every scheduler loop returns
            await asyncio.gather(*(s.run() for s in schedulers))
            for scheduler in schedulers:
                await scheduler.wait_in_flight()
        finally:
            self.running = False
            await self.sink.close()
            logger.info("Monitor Loop Stopped")

    def stop(self):
        self.stop_event.set()
        logger.info("Stopping Monitor Loop...")

    def get_status(self):
        return {
            "running": self.running,
            "monitors": len(self.schedulers),
            "in_flight": sum(len(s.in_flight) for s in self.schedulers),
            "ticks": {s.definition.display_name: s.tick_count for s in self.schedulers},
        }
