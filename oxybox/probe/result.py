"""Probe result data structure."""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class ProbeResult:
    """
    Phase timings and response facts of a single HTTP probe.

    All durations are in seconds. A field is None only when its phase was
    never entered: tls_time and cert_validity_seconds stay None for plain
    HTTP, and every optional field is None for a failed probe.

    cert_validity_seconds is the absolute expiry instant of the leaf
    certificate (Unix seconds), not the remaining lifetime.
    """

    url: str
    dns_time: Optional[float] = None
    connect_time: Optional[float] = None
    tls_time: Optional[float] = None
    processing_time: Optional[float] = None
    transfer_time: Optional[float] = None
    total_probe_time: float = 0.0
    http_status: Optional[int] = None
    http_version: Optional[float] = None
    cert_validity_seconds: Optional[float] = None

    @classmethod
    def failed(cls, url: str) -> "ProbeResult":
        """Result pushed for a probe that failed before any measurement completed."""
        return cls(url=url)

    def phases(self) -> Dict[str, float]:
        """Present phase durations keyed by phase label, in request order."""
        phases = {
            "resolve": self.dns_time,
            "connect": self.connect_time,
            "tls": self.tls_time,
            "processing": self.processing_time,
            "transfer": self.transfer_time,
        }
        return {name: value for name, value in phases.items() if value is not None}

    def cert_days_remaining(self, now: float) -> Optional[float]:
        """Days until the certificate expires, relative to ``now`` (Unix seconds)."""
        if self.cert_validity_seconds is None:
            return None
        return (self.cert_validity_seconds - now) / 86400.0
