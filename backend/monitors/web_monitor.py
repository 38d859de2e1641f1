"""HTTP endpoint health monitor"""
import asyncio
import logging
import time
from datetime import datetime

import httpx

from models import MonitorDefinition
from .base import BaseMonitor, WebOutcome, elapsed_ms

logger = logging.getLogger("NetProbe.WebMonitor")


class WebMonitor(BaseMonitor):
    """Issues a single GET and records the status code and time to headers"""

    # Liveness probing only: self-signed or otherwise invalid certificates are accepted.
    # Certificate validity is the SSL monitor's job.
    verify_certificates = False
    max_redirects = 10

    async def probe(self, definition: MonitorDefinition, started: datetime) -> WebOutcome:
        url = f"{definition.protocol_name}://{definition.destination}:{definition.port}"
        mark = time.perf_counter()

        try:
            # httpx timeouts apply per read; the monitor timeout is a deadline for the whole exchange
            status_code, response_time = await asyncio.wait_for(
                self._fetch_headers(url, definition.timeout, mark),
                timeout=definition.timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as e:
            logger.debug(f"Web check failed for {url}: {e!r}")
            return WebOutcome(is_online=False, status_code=0, response_time_ms=elapsed_ms(mark))

        return WebOutcome(is_online=True, status_code=status_code, response_time_ms=response_time)

    async def _fetch_headers(self, url: str, timeout: float, mark: float):
        """Return (status code, ms to the final response's headers); the body is never read"""
        async with httpx.AsyncClient(
            timeout=timeout,
            verify=self.verify_certificates,
            follow_redirects=True,
            max_redirects=self.max_redirects,
        ) as client:
            async with client.stream("GET", url, headers={"Cache-Control": "no-cache"}) as response:
                return response.status_code, elapsed_ms(mark)
