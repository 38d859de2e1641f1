"""TLS certificate validity monitor"""
import asyncio
import logging
import ssl
from datetime import datetime
from typing import Optional

from cryptography import x509
from cryptography.x509.oid import NameOID

from models import MonitorDefinition
from .base import BaseMonitor, SslOutcome, NOT_OBTAINED, delta_ms
from .port_monitor import FAMILIES

logger = logging.getLogger("NetProbe.SSLMonitor")


class SslMonitor(BaseMonitor):
    """
    Performs a verified TLS handshake and reports on the leaf certificate.

    Python exposes a single verified chain per connection, so the leaf of
    that chain (the peer certificate) is always the one reported.
    """

    def __init__(self, ssl_context: Optional[ssl.SSLContext] = None):
        # Default context verifies the chain and the hostname
        self.ssl_context = ssl_context or ssl.create_default_context()

    async def probe(self, definition: MonitorDefinition, started: datetime) -> SslOutcome:
        host = definition.destination
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(
                    host,
                    definition.port,
                    ssl=self.ssl_context,
                    server_hostname=host,
                    family=FAMILIES.get(definition.protocol_name, 0),
                ),
                timeout=definition.timeout,
            )
        except (OSError, UnicodeError, asyncio.TimeoutError) as e:
            # ssl.SSLError and certificate verification errors are OSError subclasses; bad hostnames raise UnicodeError
            logger.info(f"TLS handshake with {host}:{definition.port} failed: {e!r}")
            return SslOutcome.not_obtained()

        try:
            der = writer.get_extra_info("ssl_object").getpeercert(binary_form=True)
        finally:
            writer.close()

        if not der:
            logger.warning(f"TLS handshake with {host}:{definition.port} succeeded without a verified certificate")
            return SslOutcome.not_obtained(is_online=True)

        return self.inspect_certificate(x509.load_der_x509_certificate(der), started)

    def inspect_certificate(self, cert: x509.Certificate, started: datetime) -> SslOutcome:
        """Derive the certificate fields relative to the probe start instant (unclamped)"""
        names = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        common_name = str(names[0].value) if names else NOT_OBTAINED

        return SslOutcome(
            is_online=True,
            common_name=common_name,
            time_to_expire_ms=delta_ms(cert.not_valid_after_utc - started),
            time_since_valid_ms=delta_ms(started - cert.not_valid_before_utc),
        )
