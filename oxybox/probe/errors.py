"""Probe failure taxonomy, one class per phase that can fail."""


class ProbeError(Exception):
    """Base class for a probe that stopped before producing a result."""

    phase = "probe"

    def __init__(self, url: str, message: str):
        super().__init__(f"{message} ({url})")
        self.url = url
        self.message = message


class InvalidUrl(ProbeError):
    """The URL is malformed, has no host, or is not http/https."""

    phase = "parse"


class DnsFailure(ProbeError):
    """The host did not resolve to an address."""

    phase = "resolve"


class ConnectFailure(ProbeError):
    """The TCP connection was refused, reset or timed out."""

    phase = "connect"


class TlsFailure(ProbeError):
    """The TLS handshake failed or timed out."""

    phase = "tls"


class CertFailure(ProbeError):
    """The peer certificate was missing or could not be parsed."""

    phase = "certificate"


class HttpFailure(ProbeError):
    """The HTTP request failed before a complete response was read."""

    phase = "http"
