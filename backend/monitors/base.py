"""Base classes for probe executors"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Union

from models import LocalIdentity, MonitorDefinition
from records import ResultRecord

logger = logging.getLogger("NetProbe.Monitor")

NOT_OBTAINED = "notObtained"


@dataclass(frozen=True)
class PortOutcome:
    is_online: bool = False
    response_time_ms: int = 0

    def fields(self) -> Dict[str, Any]:
        return {
            "responseTime": self.response_time_ms,
            "isOnline": int(self.is_online),
        }


@dataclass(frozen=True)
class WebOutcome:
    is_online: bool = False
    status_code: int = 0
    response_time_ms: int = 0

    def fields(self) -> Dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "responseTime": self.response_time_ms,
            "isOnline": int(self.is_online),
        }


@dataclass(frozen=True)
class SslOutcome:
    is_online: bool = False
    common_name: str = NOT_OBTAINED
    time_to_expire_ms: int = 0
    time_since_valid_ms: int = 0

    @classmethod
    def not_obtained(cls, is_online: bool = False) -> "SslOutcome":
        return cls(is_online=is_online)

    def fields(self) -> Dict[str, Any]:
        return {
            "commonName": self.common_name,
            "isOnline": int(self.is_online),
            "timeToExpire": self.time_to_expire_ms,
            "timeSinceValid": self.time_since_valid_ms,
        }


CheckOutcome = Union[PortOutcome, WebOutcome, SslOutcome]


def elapsed_ms(started: float) -> int:
    """Milliseconds since a time.perf_counter() mark"""
    return int((time.perf_counter() - started) * 1000)


def delta_ms(delta: timedelta) -> int:
    """Whole milliseconds in a timedelta, truncated toward zero, sign kept"""
    return int(delta / timedelta(milliseconds=1))


class BaseMonitor:
    """Base class for all probe executors"""

    async def probe(self, definition: MonitorDefinition, started: datetime) -> CheckOutcome:
        """
        Run one probe against the definition's target.
        Must never raise for network failures: they become a negative outcome.
        """
        raise NotImplementedError("Subclasses must implement probe()")

    async def check(self, definition: MonitorDefinition, identity: LocalIdentity, sink) -> ResultRecord:
        """
        Execute one probe and submit exactly one record to the sink.

        The record timestamp is the probe start instant, whatever the outcome.
        """
        started = datetime.now(timezone.utc)
        outcome = await self.probe(definition, started)

        record = ResultRecord(
            measurement=definition.type,
            name=definition.display_name,
            source=identity.source_name,
            timestamp=started,
            fields=outcome.fields(),
        )
        logger.debug(f"Result for {definition.display_name} ({definition.type}): {record.fields}")
        sink.write(record)
        return record
