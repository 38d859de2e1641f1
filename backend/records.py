"""Measurement points produced by probes"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from influxdb_client import Point


@dataclass(frozen=True)
class ResultRecord:
    """One timestamped measurement, built once per executed probe."""
    measurement: str
    name: str
    source: str
    timestamp: datetime
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def tags(self) -> Dict[str, str]:
        return {"name": self.name, "source": self.source}

    def to_point(self) -> Point:
        point = Point(self.measurement)
        for key, value in self.tags.items():
            point = point.tag(key, value)
        for key, value in self.fields.items():
            point = point.field(key, value)
        return point.time(self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "measurement": self.measurement,
            "tags": self.tags,
            "fields": dict(self.fields),
        }
