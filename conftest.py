import asyncio
import datetime
import ipaddress
import os
import ssl
import sys

import pytest
import pytest_asyncio
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

# Ensure backend modules are importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'backend'))

from models import LocalIdentity, MonitorDefinition


class MemorySink:
    """In-memory stand-in for the backend sink"""

    def __init__(self):
        self.records = []
        self.started = False
        self.closed = False

    async def start(self):
        self.started = True

    def write(self, record):
        self.records.append(record)

    async def close(self):
        self.closed = True


@pytest.fixture
def memory_sink():
    return MemorySink()


@pytest.fixture
def identity():
    return LocalIdentity(source_name="test-probe")


@pytest.fixture
def make_definition():
    def _make(monitor_type="simplePortMonitor", protocol="tcp", destination="127.0.0.1",
              port=80, interval_ms=1000, timeout_ms=1000, name="target"):
        return MonitorDefinition(
            display_name=name,
            interval_ms=interval_ms,
            timeout_ms=timeout_ms,
            type=monitor_type,
            protocol_name=protocol,
            destination=destination,
            port=port,
        )
    return _make


@pytest.fixture(autouse=True)
def no_proxy_env(monkeypatch):
    """Local test servers must never be reached through an environment proxy"""
    for var in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def closed_port():
    """A localhost port with nothing listening on it"""
    import socket
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# --- Certificates ---

def _name(common_name):
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _write_pem(path, cert, key=None):
    with open(path, "wb") as f:
        f.write(cert.public_bytes(serialization.Encoding.PEM))
    if key is not None:
        key_path = str(path) + ".key"
        with open(key_path, "wb") as f:
            f.write(key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.TraditionalOpenSSL,
                serialization.NoEncryption(),
            ))
        return key_path
    return None


class CertificateFactory:
    def __init__(self, directory):
        self.directory = directory
        self.ca_key = ec.generate_private_key(ec.SECP256R1())
        now = datetime.datetime.now(datetime.timezone.utc)
        self.ca_cert = (
            x509.CertificateBuilder()
            .subject_name(_name("NetProbe Test CA"))
            .issuer_name(_name("NetProbe Test CA"))
            .public_key(self.ca_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - datetime.timedelta(days=365))
            .not_valid_after(now + datetime.timedelta(days=365))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .add_extension(x509.KeyUsage(
                digital_signature=True, content_commitment=False, key_encipherment=False,
                data_encipherment=False, key_agreement=False, key_cert_sign=True,
                crl_sign=True, encipher_only=False, decipher_only=False,
            ), critical=True)
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(self.ca_key.public_key()), critical=False)
            .sign(self.ca_key, hashes.SHA256())
        )
        self.ca_file = os.path.join(directory, "ca.pem")
        _write_pem(self.ca_file, self.ca_cert)

    def leaf(self, common_name, not_before, not_after, self_signed=False):
        """
        Issue a localhost server certificate.
        Returns (certificate, certfile, keyfile).
        """
        key = ec.generate_private_key(ec.SECP256R1())
        issuer_name = _name(common_name) if self_signed else self.ca_cert.subject
        signing_key = key if self_signed else self.ca_key
        builder = (
            x509.CertificateBuilder()
            .subject_name(_name(common_name))
            .issuer_name(issuer_name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(x509.SubjectAlternativeName([
                x509.DNSName("localhost"),
                x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
            ]), critical=False)
            .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        )
        if not self_signed:
            builder = builder.add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(self.ca_key.public_key()), critical=False
            )
        cert = builder.sign(signing_key, hashes.SHA256())

        cert_file = os.path.join(self.directory, f"{common_name}.pem")
        key_file = _write_pem(cert_file, cert, key)
        return cert, cert_file, key_file

    def server_context(self, cert_file, key_file):
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.load_cert_chain(cert_file, key_file)
        return context

    def client_context(self):
        """Default verifying context that trusts the test CA"""
        return ssl.create_default_context(cafile=self.ca_file)


@pytest.fixture
def certificates(tmp_path):
    return CertificateFactory(str(tmp_path))


# --- Local servers ---

@pytest_asyncio.fixture
async def start_server():
    """
    Factory for local asyncio servers. Returns the bound port.
    Handlers are plain asyncio stream callbacks.
    """
    servers = []

    async def _start(handler, ssl_context=None):
        server = await asyncio.start_server(handler, "127.0.0.1", 0, ssl=ssl_context)
        servers.append(server)
        return server.sockets[0].getsockname()[1]

    yield _start

    for server in servers:
        server.close()
        await server.wait_closed()


def http_handler(status_line="200 OK", body=b"ok", body_delay=0.0):
    """Minimal HTTP/1.1 responder; body_delay holds the body back after the headers"""
    async def handler(reader, writer):
        try:
            await reader.readuntil(b"\r\n\r\n")
            writer.write(
                f"HTTP/1.1 {status_line}\r\nContent-Length: {len(body)}\r\nConnection: close\r\n\r\n".encode()
            )
            await writer.drain()
            if body_delay:
                await asyncio.sleep(body_delay)
            writer.write(body)
            await writer.drain()
        except (OSError, asyncio.IncompleteReadError):
            pass
        finally:
            writer.close()
    return handler


@pytest.fixture
def http_responder():
    return http_handler
