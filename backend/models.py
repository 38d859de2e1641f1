from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List

from validation import (
    DATAGRAM_PROTOCOLS,
    STREAM_PROTOCOLS,
    WEB_SCHEMES,
    validate_duration_ms,
    validate_port,
    validate_protocol,
)

# Monitor type identifiers (also used as measurement names)
PORT_MONITOR = "simplePortMonitor"
WEB_MONITOR = "simpleWebMonitor"
SSL_MONITOR = "simpleSSLMonitor"

ALLOWED_PROTOCOLS = {
    PORT_MONITOR: STREAM_PROTOCOLS + DATAGRAM_PROTOCOLS,
    WEB_MONITOR: WEB_SCHEMES,
    SSL_MONITOR: STREAM_PROTOCOLS,
}


class BackendConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    protocol: str = "http"
    host: str
    port: int = 8086
    organisation: str = ""
    bucket: str
    username: str = ""
    password: str = ""

    @field_validator('port')
    @classmethod
    def check_port(cls, v: int) -> int:
        if not validate_port(v):
            raise ValueError('Backend port must be between 1 and 65535')
        return v

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"

    @property
    def token(self) -> str:
        # InfluxDB 1.8 compatibility endpoint accepts "username:password" as token
        return f"{self.username}:{self.password}"


class LocalIdentity(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source_name: str = Field(alias="displayNameSource")


class MonitorDefinition(BaseModel):
    """One configured target, check type and polling cadence"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    display_name: str = Field(alias="displayNameTarget")
    interval_ms: int = Field(alias="intervalInMilliseconds")
    timeout_ms: int = Field(alias="timeoutInMilliseconds")
    type: str
    protocol_name: str = Field(alias="protocolName")
    destination: str
    port: int

    @model_validator(mode='after')
    def check_known_type(self) -> 'MonitorDefinition':
        # Unknown types are skipped by the supervisor, not rejected here
        allowed = ALLOWED_PROTOCOLS.get(self.type)
        if allowed is None:
            return self
        if not (validate_duration_ms(self.interval_ms) and validate_duration_ms(self.timeout_ms)):
            raise ValueError('Durations must be positive milliseconds')
        if not validate_port(self.port):
            raise ValueError('Port must be between 1 and 65535')
        if not validate_protocol(self.protocol_name, allowed):
            raise ValueError(f"Protocol '{self.protocol_name}' not supported by {self.type}")
        return self

    @property
    def interval(self) -> float:
        """Interval in seconds"""
        return self.interval_ms / 1000.0

    @property
    def timeout(self) -> float:
        """Timeout in seconds"""
        return self.timeout_ms / 1000.0


class ConfigFile(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    backend: Optional[BackendConfig] = Field(default=None, alias="backendConfig")
    local: LocalIdentity = Field(alias="localConfig")
    monitors: List[MonitorDefinition] = []
