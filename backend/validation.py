"""Input validation utilities for monitor definitions"""
import logging

logger = logging.getLogger("NetProbe.Validation")

STREAM_PROTOCOLS = ("tcp", "tcp4", "tcp6")
DATAGRAM_PROTOCOLS = ("udp", "udp4", "udp6")
WEB_SCHEMES = ("http", "https")


def validate_port(port: int) -> bool:
    """Validate port number is in valid range"""
    if not (1 <= port <= 65535):
        logger.warning(f"Port out of range (1-65535): {port}")
        return False
    return True


def validate_duration_ms(value: int) -> bool:
    """Intervals and timeouts must be positive millisecond counts"""
    if value <= 0:
        logger.warning(f"Duration must be positive: {value}ms")
        return False
    return True


def validate_protocol(protocol: str, allowed: tuple) -> bool:
    """
    Validate a protocol name against the set a monitor type supports.

    Args:
        protocol: Protocol name from the config (e.g. "tcp", "https")
        allowed: Protocol names accepted by the monitor type

    Returns:
        True if valid, False otherwise
    """
    if protocol not in allowed:
        logger.warning(f"Unsupported protocol '{protocol}', expected one of {', '.join(allowed)}")
        return False
    return True
