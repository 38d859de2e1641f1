"""Port reachability monitor"""
import asyncio
import logging
import socket
import time
from datetime import datetime

from models import MonitorDefinition
from validation import DATAGRAM_PROTOCOLS
from .base import BaseMonitor, PortOutcome, elapsed_ms

logger = logging.getLogger("NetProbe.PortMonitor")

FAMILIES = {
    "tcp4": socket.AF_INET,
    "tcp6": socket.AF_INET6,
    "udp4": socket.AF_INET,
    "udp6": socket.AF_INET6,
}


class PortMonitor(BaseMonitor):
    """Checks that a TCP (or UDP) endpoint accepts a connection"""

    async def probe(self, definition: MonitorDefinition, started: datetime) -> PortOutcome:
        mark = time.perf_counter()
        is_online = False

        try:
            await asyncio.wait_for(
                self._connect(definition.protocol_name, definition.destination, definition.port),
                timeout=definition.timeout,
            )
            is_online = True
        except (OSError, UnicodeError, asyncio.TimeoutError) as e:
            # Refusal, timeout and resolution errors (including IDNA encoding) are all reported the same way
            logger.debug(f"Port check failed for {definition.destination}:{definition.port}: {e!r}")

        return PortOutcome(is_online=is_online, response_time_ms=elapsed_ms(mark))

    async def _connect(self, protocol: str, host: str, port: int):
        """Open and immediately close a connection, no data exchanged"""
        family = FAMILIES.get(protocol, socket.AF_UNSPEC)

        if protocol in DATAGRAM_PROTOCOLS:
            loop = asyncio.get_running_loop()
            transport, _ = await loop.create_datagram_endpoint(
                asyncio.DatagramProtocol,
                remote_addr=(host, port),
                family=family,
            )
            transport.close()
            return

        _, writer = await asyncio.open_connection(host, port, family=family)
        writer.close()
