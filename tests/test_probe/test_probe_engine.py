"""Tests for the phase-decomposed probe engine."""

import socket
import ssl
from unittest.mock import AsyncMock, Mock

import dns.resolver
import pytest

from oxybox.probe.certificate import CertificateParseError
from oxybox.probe.engine import ProbeEngine, convert_http_version
from oxybox.probe.errors import (
    CertFailure,
    ConnectFailure,
    DnsFailure,
    HttpFailure,
    InvalidUrl,
    TlsFailure,
)
from oxybox.probe.resolver import DnsResolver

from conftest import CERT_NOT_AFTER, LocalHttpServer


@pytest.fixture
def engine(logger):
    """Engine resolving through a resolver that never leaves the host for IP literals."""
    return ProbeEngine(DnsResolver(["127.0.0.1"]), http_timeout=5.0, logger=logger)


def unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def assert_timings_consistent(result):
    phases = result.phases()
    assert all(value >= 0 for value in phases.values())
    assert result.total_probe_time >= 0
    assert result.total_probe_time >= sum(phases.values())


@pytest.mark.asyncio
async def test_probe_plain_http(engine, http_server):
    """Plain HTTP has every phase except TLS and no certificate."""
    result = await engine.probe(http_server.url)

    assert result.url == http_server.url
    assert result.http_status == 200
    assert result.http_version == 1.1
    assert result.dns_time is not None
    assert result.connect_time is not None
    assert result.processing_time is not None
    assert result.transfer_time is not None
    assert result.tls_time is None
    assert result.cert_validity_seconds is None
    assert_timings_consistent(result)


@pytest.mark.asyncio
async def test_probe_https_records_tls_and_cert_expiry(engine, https_server):
    """HTTPS probes time the handshake and report the certificate's notAfter."""
    result = await engine.probe(https_server.url)

    assert result.http_status == 200
    assert result.tls_time is not None
    assert result.tls_time >= 0
    assert result.cert_validity_seconds == CERT_NOT_AFTER.timestamp()
    assert set(result.phases()) == {"resolve", "connect", "tls", "processing", "transfer"}
    assert_timings_consistent(result)


@pytest.mark.asyncio
async def test_probe_reports_non_200_status(engine):
    """The engine reports any status; acceptance is decided by the caller."""
    server = await LocalHttpServer(status=404, body=b"missing").start()
    try:
        result = await engine.probe(server.url)
    finally:
        await server.stop()

    assert result.http_status == 404
    assert result.transfer_time is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("url", [
    "https:///no-host",
    "ftp://example.com/file",
    "not a url",
])
async def test_probe_invalid_url(engine, url):
    with pytest.raises(InvalidUrl):
        await engine.probe(url)


@pytest.mark.asyncio
async def test_probe_dns_failure(logger):
    """Resolver errors become DnsFailure."""
    resolver = Mock()
    resolver.lookup_ip = AsyncMock(side_effect=dns.resolver.NXDOMAIN())
    engine = ProbeEngine(resolver, logger=logger)

    with pytest.raises(DnsFailure) as exc_info:
        await engine.probe("https://does-not-exist.invalid/")

    assert exc_info.value.url == "https://does-not-exist.invalid/"
    assert exc_info.value.phase == "resolve"
    resolver.lookup_ip.assert_awaited_once_with("does-not-exist.invalid")


@pytest.mark.asyncio
async def test_probe_connect_failure(engine):
    with pytest.raises(ConnectFailure):
        await engine.probe(f"http://127.0.0.1:{unused_port()}/")


@pytest.mark.asyncio
async def test_probe_tls_failure(engine):
    """A peer that hangs up during the handshake is a TLS failure."""
    server = await LocalHttpServer(mode="close").start()
    port = server.url.rsplit(":", 1)[1]
    try:
        with pytest.raises(TlsFailure):
            await engine.probe(f"https://127.0.0.1:{port}")
    finally:
        await server.stop()


@pytest.mark.asyncio
async def test_probe_unparsable_certificate(engine, https_server):
    """A certificate that cannot be decoded fails the certificate phase."""
    engine.inspector = Mock(expiry=Mock(side_effect=CertificateParseError("bad")))

    with pytest.raises(CertFailure) as exc_info:
        await engine.probe(https_server.url)

    assert exc_info.value.phase == "certificate"
    assert "Failed to parse certificate" in exc_info.value.message
    assert isinstance(exc_info.value.__cause__, CertificateParseError)


@pytest.mark.asyncio
async def test_probe_missing_peer_certificate(engine, https_server, monkeypatch):
    """A handshake that yields no peer certificate fails the certificate phase."""
    monkeypatch.setattr(ssl.SSLObject, "getpeercert", lambda self, binary_form=False: None)
    engine.inspector = Mock()

    with pytest.raises(CertFailure) as exc_info:
        await engine.probe(https_server.url)

    assert exc_info.value.phase == "certificate"
    assert "Failed to retrieve certificate" in exc_info.value.message
    engine.inspector.expiry.assert_not_called()


@pytest.mark.asyncio
async def test_probe_http_failure(engine):
    """A server that drops the request without answering is an HTTP failure."""
    server = await LocalHttpServer(mode="drop").start()
    try:
        with pytest.raises(HttpFailure):
            await engine.probe(server.url)
    finally:
        await server.stop()


@pytest.mark.asyncio
async def test_probe_uses_default_port_for_scheme(logger):
    """Without an explicit port, https connects to 443 and http to 80."""
    resolver = Mock()
    resolver.lookup_ip = AsyncMock(return_value="192.0.2.1")
    engine = ProbeEngine(resolver, logger=logger)

    engine._connect = AsyncMock(side_effect=ConnectFailure("x", "stop"))

    with pytest.raises(ConnectFailure):
        await engine.probe("https://example.com/health")
    assert engine._connect.await_args.args[2:] == ("192.0.2.1", 443, True)

    with pytest.raises(ConnectFailure):
        await engine.probe("http://example.com/health")
    assert engine._connect.await_args.args[2:] == ("192.0.2.1", 80, False)


@pytest.mark.parametrize("version,expected", [
    ("HTTP/0.9", 0.9),
    ("HTTP/1.0", 1.0),
    ("HTTP/1.1", 1.1),
    ("HTTP/2", 2.0),
    ("HTTP/3", 3.0),
    ("SPDY/3", 0.0),
    ("", 0.0),
])
def test_convert_http_version(version, expected):
    assert convert_http_version(version) == expected
