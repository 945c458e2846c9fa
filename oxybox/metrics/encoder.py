"""Conversion of probe results into blackbox-exporter style time series."""

import logging
from typing import List, Optional, Tuple

from ..probe.result import ProbeResult
from .series import TimeSeries, create_time_series, now_ms

logger = logging.getLogger(__name__)

INSTANCE_LABEL = "instance"
JOB_LABEL = "job"
MODULE_LABEL = "module"
TARGET_LABEL = "target"
PHASE_LABEL = "phase"

JOB = "oxybox"
HTTP_MODULE = "http_probe"

PROBE_SUCCESS_METRIC = "probe_success"
PROBE_DURATION_METRIC = "probe_duration_seconds"
PROBE_HTTP_DURATION_METRIC = "probe_http_duration_seconds"
PROBE_HTTP_STATUS_METRIC = "probe_http_status_code"
PROBE_DNS_LOOKUP_TIME_METRIC = "probe_dns_lookup_time_seconds"
PROBE_HTTP_SSL_METRIC = "probe_http_ssl"
PROBE_SSL_EXPIRY_METRIC = "probe_ssl_earliest_cert_expiry"
PROBE_HTTP_VERSION_METRIC = "probe_http_version"


class TimeSeriesEncoder:
    """
    Builds the metric set pushed for one probe.

    Pure: the same result, success flag and timestamp always produce the
    same series in the same order.
    """

    @staticmethod
    def target_labels(url: str) -> List[Tuple[str, str]]:
        return [
            (INSTANCE_LABEL, url),
            (JOB_LABEL, JOB),
            (MODULE_LABEL, HTTP_MODULE),
            (TARGET_LABEL, url),
        ]

    @classmethod
    def encode(
        cls,
        probe_result: ProbeResult,
        probe_success: bool,
        organisation_id: str,
        timestamp_ms: Optional[int] = None
    ) -> List[TimeSeries]:
        """
        Encode a probe result.

        Tenant separation happens at push time through the X-Scope-OrgID
        header, so organisation_id does not become a label.

        Args:
            probe_result: Result of the probe (or ProbeResult.failed)
            probe_success: Whether the probe counts as successful
            organisation_id: Tenant the series will be pushed to
            timestamp_ms: Shared sample timestamp, defaults to now

        Returns:
            List[TimeSeries]: Series in a stable order
        """
        timestamp = timestamp_ms if timestamp_ms is not None else now_ms()
        labels = cls.target_labels(probe_result.url)

        def series(name: str, value: float, extra: Tuple[Tuple[str, str], ...] = ()) -> TimeSeries:
            return create_time_series(name, labels + list(extra), value, timestamp)

        metrics = [
            series(PROBE_SUCCESS_METRIC, 1.0 if probe_success else 0.0),
            series(PROBE_DURATION_METRIC, probe_result.total_probe_time),
        ]

        for phase, duration in probe_result.phases().items():
            metrics.append(series(PROBE_HTTP_DURATION_METRIC, duration, ((PHASE_LABEL, phase),)))

        if probe_result.http_status is not None:
            metrics.append(series(PROBE_HTTP_STATUS_METRIC, float(probe_result.http_status)))

        if probe_result.dns_time is not None:
            metrics.append(series(PROBE_DNS_LOOKUP_TIME_METRIC, probe_result.dns_time))

        has_cert = probe_result.cert_validity_seconds is not None
        metrics.append(series(PROBE_HTTP_SSL_METRIC, 1.0 if has_cert else 0.0))
        if has_cert:
            metrics.append(series(PROBE_SSL_EXPIRY_METRIC, probe_result.cert_validity_seconds))

        if probe_result.http_version is not None:
            metrics.append(series(PROBE_HTTP_VERSION_METRIC, probe_result.http_version))

        logger.debug(
            f"Encoded {len(metrics)} series for {probe_result.url}",
            extra={"organisation_id": organisation_id}
        )
        return metrics
