"""Exception hierarchy for NetProbe"""
from typing import Optional


class MonitorError(Exception):
    """Base class for all NetProbe errors"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class ConfigLoadError(MonitorError):
    """Configuration document is missing or unreadable"""


class ConfigParseError(MonitorError):
    """Configuration document is not valid JSON or violates the schema"""


class SinkWriteError(MonitorError):
    """A measurement batch could not be persisted by the backend"""
