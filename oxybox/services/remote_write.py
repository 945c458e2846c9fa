"""Prometheus remote-write client (protobuf + Snappy over HTTP)."""

import logging
from typing import List, Optional

import httpx
import snappy

from ..metrics import prompb
from ..metrics.series import Sample, TimeSeries

PUSH_PATH = "/api/v1/push"
REMOTE_WRITE_VERSION = "0.1.0"
USER_AGENT = "oxybox-remote-write/1.0"


class PushError(Exception):
    """Base class for failed metric pushes."""


class BackendRejected(PushError):
    """The backend answered with a non-2xx status."""

    def __init__(self, status: int, body: str):
        super().__init__(f"Remote write rejected: {status} - {body}")
        self.status = status
        self.body = body


class PushTransportError(PushError):
    """The request never got an HTTP response."""


def to_write_request(series: List[TimeSeries]):
    """Build a prometheus.WriteRequest message from time series."""
    write_request = prompb.WriteRequest()
    for ts in series:
        pb_series = write_request.timeseries.add()
        for name, value in ts.labels:
            pb_series.labels.add(name=name, value=value)
        for sample in ts.samples:
            pb_series.samples.add(value=sample.value, timestamp=sample.timestamp_ms)
    return write_request


def serialize_write_request(series: List[TimeSeries]) -> bytes:
    """Protobuf-encode and Snappy (block format) compress a write request."""
    return snappy.compress(to_write_request(series).SerializeToString())


def decode_write_request(payload: bytes) -> List[TimeSeries]:
    """Inverse of serialize_write_request."""
    write_request = prompb.WriteRequest()
    write_request.ParseFromString(snappy.decompress(payload))
    return [
        TimeSeries(
            labels=tuple((label.name, label.value) for label in pb_series.labels),
            samples=tuple(Sample(value=s.value, timestamp_ms=s.timestamp) for s in pb_series.samples),
        )
        for pb_series in write_request.timeseries
    ]


class RemoteWriteClient:
    """
    Pushes time series to a remote-write endpoint.

    Each push is attempted once; retrying is left to the caller.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize remote-write client.

        Args:
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
            logger: Optional logger instance
        """
        self.timeout = timeout
        self._transport = transport
        self.logger = (logger or logging.getLogger(__name__)).getChild("RemoteWriteClient")

    @staticmethod
    def push_url(endpoint: str) -> str:
        return endpoint.rstrip("/") + PUSH_PATH

    @staticmethod
    def build_headers(tenant_id: Optional[str]) -> dict:
        headers = {
            "Content-Encoding": "snappy",
            "Content-Type": "application/x-protobuf",
            "X-Prometheus-Remote-Write-Version": REMOTE_WRITE_VERSION,
            "User-Agent": USER_AGENT,
        }
        if tenant_id:
            headers["X-Scope-OrgID"] = tenant_id
        return headers

    async def push(
        self,
        endpoint: str,
        tenant_id: Optional[str],
        series: List[TimeSeries]
    ) -> None:
        """
        Send series to ``{endpoint}/api/v1/push``.

        Args:
            endpoint: Base URL of the backend (e.g. http://localhost:9009)
            tenant_id: Value for X-Scope-OrgID, omitted when None
            series: Series to push; an empty list is a no-op

        Raises:
            BackendRejected: On a non-2xx response
            PushTransportError: On connection or timeout errors
        """
        if not series:
            self.logger.debug("No metrics to send")
            return

        payload = serialize_write_request(series)
        url = self.push_url(endpoint)

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    url,
                    content=payload,
                    headers=self.build_headers(tenant_id)
                )
        except httpx.HTTPError as e:
            raise PushTransportError(f"Remote write to {url} failed: {type(e).__name__}: {e}") from e

        if not response.is_success:
            raise BackendRejected(response.status_code, response.text)

        self.logger.debug(
            f"Pushed {len(series)} series",
            extra={"tenant_id": tenant_id, "bytes": len(payload)}
        )
