"""Phase-decomposed HTTP(S) probe engine."""

import asyncio
import logging
import ssl
import time
from typing import Optional, Tuple

import dns.exception
import httpx

from .certificate import CertificateInspector, CertificateParseError
from .errors import (
    CertFailure,
    ConnectFailure,
    DnsFailure,
    HttpFailure,
    InvalidUrl,
    TlsFailure,
)
from .resolver import DnsResolver
from .result import ProbeResult

USER_AGENT = "oxybox-probe/1.0"

HTTP_VERSIONS = {
    "HTTP/0.9": 0.9,
    "HTTP/1.0": 1.0,
    "HTTP/1.1": 1.1,
    "HTTP/2": 2.0,
    "HTTP/2.0": 2.0,
    "HTTP/3": 3.0,
    "HTTP/3.0": 3.0,
}


def convert_http_version(version: str) -> float:
    """Map an HTTP version string to its numeric form, 0.0 when unknown."""
    return HTTP_VERSIONS.get((version or "").upper(), 0.0)


def create_tls_context() -> ssl.SSLContext:
    """
    Build the client TLS context used for the handshake phase.

    Chain and hostname validation are disabled: probed endpoints may use
    private CAs, and the expiry of whatever certificate they present is
    still recorded.
    """
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class ProbeEngine:
    """
    Runs a single black-box probe of one URL.

    Connection setup (DNS, TCP, TLS) is measured on a raw stream that is
    discarded afterwards; the HTTP exchange goes through a separate httpx
    client, the way an outside observer would see the endpoint.
    """

    def __init__(
        self,
        resolver: DnsResolver,
        tls_context: Optional[ssl.SSLContext] = None,
        http_timeout: float = 10.0,
        connect_timeout: Optional[float] = None,
        follow_redirects: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize probe engine.

        Args:
            resolver: Resolver used for the DNS phase
            tls_context: Client context for the TLS phase (non-validating by default)
            http_timeout: Timeout of the HTTP request, in seconds
            connect_timeout: Timeout of TCP connect and TLS handshake (defaults to http_timeout)
            follow_redirects: Whether the HTTP phase follows redirects
            logger: Optional logger instance
        """
        self.resolver = resolver
        self.tls_context = tls_context or create_tls_context()
        self.http_timeout = http_timeout
        self.connect_timeout = connect_timeout or http_timeout
        self.follow_redirects = follow_redirects
        self.inspector = CertificateInspector()
        self.logger = (logger or logging.getLogger(__name__)).getChild("ProbeEngine")

    async def probe(self, url: str) -> ProbeResult:
        """
        Probe ``url`` and return its phase timings.

        Args:
            url: Absolute http:// or https:// URL

        Returns:
            ProbeResult: Timings, status and certificate expiry

        Raises:
            ProbeError: Subclass naming the phase that failed
        """
        probe_start = time.perf_counter()
        host, port, with_tls = self._parse_url(url)

        dns_start = time.perf_counter()
        try:
            ip = await self.resolver.lookup_ip(host)
        except (dns.exception.DNSException, OSError) as e:
            raise DnsFailure(url, f"DNS resolution failed for host {host}: {e}") from e
        dns_time = time.perf_counter() - dns_start

        connect_time, tls_time, cert_validity = await self._connect(url, host, ip, port, with_tls)

        # Everything before the first response byte that was already measured
        deducted_time = dns_time + connect_time + (tls_time or 0.0)

        request_start = time.perf_counter()
        try:
            async with self._build_client() as client:
                async with client.stream("GET", url) as response:
                    request_duration = time.perf_counter() - request_start
                    processing_time = max(request_duration - deducted_time, 0.0)
                    http_status = response.status_code
                    http_version = convert_http_version(response.http_version)

                    transfer_start = time.perf_counter()
                    await response.aread()
                    transfer_time = time.perf_counter() - transfer_start
        except httpx.HTTPError as e:
            raise HttpFailure(url, f"HTTP request failed: {type(e).__name__}: {e}") from e

        total_probe_time = time.perf_counter() - probe_start

        self.logger.debug(
            f"Probed {url}",
            extra={"url": url, "ip": ip, "http_status": http_status, "total_probe_time": total_probe_time}
        )

        return ProbeResult(
            url=url,
            dns_time=dns_time,
            connect_time=connect_time,
            tls_time=tls_time,
            processing_time=processing_time,
            transfer_time=transfer_time,
            total_probe_time=total_probe_time,
            http_status=http_status,
            http_version=http_version,
            cert_validity_seconds=cert_validity,
        )

    def _parse_url(self, url: str) -> Tuple[str, int, bool]:
        """Return (host, port, with_tls) or raise InvalidUrl."""
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidUrl(url, f"Invalid URL: {e}") from e

        if parsed.scheme not in ("http", "https"):
            raise InvalidUrl(url, f"Unsupported scheme: {parsed.scheme!r}")
        if not parsed.host:
            raise InvalidUrl(url, "Host is empty")

        with_tls = parsed.scheme == "https"
        port = parsed.port or (443 if with_tls else 80)
        return parsed.host, port, with_tls

    async def _connect(
        self,
        url: str,
        host: str,
        ip: str,
        port: int,
        with_tls: bool
    ) -> Tuple[float, Optional[float], Optional[float]]:
        """
        Time the TCP connect and, for https, the TLS handshake.

        Returns:
            Tuple of (connect_time, tls_time, cert_validity_seconds)
        """
        connect_start = time.perf_counter()
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(ip, port),
                timeout=self.connect_timeout
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise ConnectFailure(url, f"Failed to connect to {ip}:{port}: {e!r}") from e
        connect_time = time.perf_counter() - connect_start

        try:
            if not with_tls:
                return connect_time, None, None

            tls_start = time.perf_counter()
            try:
                await asyncio.wait_for(
                    writer.start_tls(self.tls_context, server_hostname=host),
                    timeout=self.connect_timeout
                )
            except (ssl.SSLError, OSError, asyncio.TimeoutError) as e:
                raise TlsFailure(url, f"TLS handshake with {host} failed: {e!r}") from e
            tls_time = time.perf_counter() - tls_start

            return connect_time, tls_time, self._certificate_expiry(url, host, writer)
        finally:
            # The measurement stream is never reused; skip the TLS close_notify exchange
            writer.transport.abort()

    def _certificate_expiry(self, url: str, host: str, writer: asyncio.StreamWriter) -> float:
        ssl_object = writer.get_extra_info("ssl_object")
        der = ssl_object.getpeercert(binary_form=True) if ssl_object is not None else None
        if not der:
            raise CertFailure(url, f"Failed to retrieve certificate for host {host}")

        try:
            return float(self.inspector.expiry(der))
        except CertificateParseError as e:
            raise CertFailure(url, f"Failed to parse certificate for host {host}: {e}") from e

    def _build_client(self) -> httpx.AsyncClient:
        # A fresh client per probe keeps connection pools out of the timings
        return httpx.AsyncClient(
            verify=False,
            http2=True,
            timeout=self.http_timeout,
            follow_redirects=self.follow_redirects,
            headers={"User-Agent": USER_AGENT}
        )
