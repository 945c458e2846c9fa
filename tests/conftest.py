"""Shared pytest configuration and fixtures."""

import asyncio
import ipaddress
import ssl
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Optional

import pytest
import pytest_asyncio
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from oxybox.utils.logger import setup_logger


CERT_NOT_AFTER = datetime(2031, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

SAMPLE_CONFIG = """
demo:
    organisation_id: demo
    polling_interval_seconds: 10
    targets:
        - url: https://www.google.com
        - url: https://www.github.com
          accepted_status_codes: [200, 301]

organisationX:
    organisation_id: 1
    polling_interval_seconds: 20
    targets:
        - url: http://www.example.com
"""


@pytest.fixture
def logger():
    """Create logger for tests."""
    return setup_logger("test")


@pytest.fixture
def config_file(tmp_path):
    """Write the sample configuration to disk."""
    path = tmp_path / "config.yml"
    path.write_text(SAMPLE_CONFIG)
    return path


@pytest.fixture(scope="session")
def self_signed():
    """Self-signed certificate for 127.0.0.1 expiring at CERT_NOT_AFTER."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "oxybox-test")])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(datetime(2024, 1, 1, tzinfo=timezone.utc))
        .not_valid_after(CERT_NOT_AFTER)
        .add_extension(
            x509.SubjectAlternativeName([x509.IPAddress(ipaddress.ip_address("127.0.0.1"))]),
            critical=False
        )
        .sign(key, hashes.SHA256())
    )
    return cert, key


@pytest.fixture
def cert_der(self_signed):
    cert, _ = self_signed
    return cert.public_bytes(serialization.Encoding.DER)


@pytest.fixture
def server_tls_context(self_signed, tmp_path):
    """Server-side TLS context presenting the self-signed certificate."""
    cert, key = self_signed
    cert_path = tmp_path / "cert.pem"
    key_path = tmp_path / "key.pem"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption()
    ))

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(str(cert_path), str(key_path))
    return context


class LocalHttpServer:
    """
    Minimal HTTP/1.1 server on 127.0.0.1.

    Modes: "respond" answers every request, "drop" closes the connection
    right after reading the request, "close" closes before reading anything.
    """

    def __init__(
        self,
        status: int = 200,
        body: bytes = b"hello",
        ssl_context: Optional[ssl.SSLContext] = None,
        mode: str = "respond"
    ):
        self.status = status
        self.body = body
        self.ssl_context = ssl_context
        self.mode = mode
        self.requests = 0
        self._server = None

    @property
    def url(self) -> str:
        port = self._server.sockets[0].getsockname()[1]
        scheme = "https" if self.ssl_context else "http"
        return f"{scheme}://127.0.0.1:{port}/"

    async def start(self) -> "LocalHttpServer":
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0, ssl=self.ssl_context)
        return self

    async def stop(self) -> None:
        self._server.close()
        await self._server.wait_closed()

    async def _handle(self, reader, writer):
        try:
            if self.mode == "close":
                return
            try:
                await reader.readuntil(b"\r\n\r\n")
            except (asyncio.IncompleteReadError, asyncio.LimitOverrunError, OSError):
                return
            self.requests += 1
            if self.mode == "drop":
                return

            reason = HTTPStatus(self.status).phrase
            writer.write(
                f"HTTP/1.1 {self.status} {reason}\r\n"
                f"Content-Length: {len(self.body)}\r\n"
                "Content-Type: text/plain\r\n"
                "Connection: close\r\n\r\n".encode() + self.body
            )
            try:
                await writer.drain()
            except OSError:
                pass
        finally:
            writer.close()


@pytest_asyncio.fixture
async def http_server():
    """Plain HTTP server answering 200."""
    server = await LocalHttpServer().start()
    yield server
    await server.stop()


@pytest_asyncio.fixture
async def https_server(server_tls_context):
    """TLS server answering 200 with the self-signed certificate."""
    server = await LocalHttpServer(ssl_context=server_tls_context).start()
    yield server
    await server.stop()
