"""Time series data structures shared by the encoder and the remote-write client."""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

METRIC_NAME_LABEL = "__name__"


@dataclass(frozen=True)
class Sample:
    value: float
    timestamp_ms: int


@dataclass(frozen=True)
class TimeSeries:
    """A named metric with ordered labels and its samples."""

    labels: Tuple[Tuple[str, str], ...]
    samples: Tuple[Sample, ...] = field(default_factory=tuple)

    @property
    def name(self) -> str:
        return self.label(METRIC_NAME_LABEL) or ""

    def label(self, name: str) -> Optional[str]:
        for label_name, value in self.labels:
            if label_name == name:
                return value
        return None


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def create_time_series(
    metric_name: str,
    labels: Sequence[Tuple[str, str]],
    value: float,
    timestamp_ms: Optional[int] = None
) -> TimeSeries:
    """
    Create a single-sample time series.

    The ``__name__`` label is always first; custom labels follow in the
    given order.

    Args:
        metric_name: Value of the __name__ label
        labels: Additional (name, value) label pairs
        value: Sample value
        timestamp_ms: Sample timestamp, defaults to now

    Returns:
        TimeSeries: Series with exactly one sample
    """
    all_labels = [(METRIC_NAME_LABEL, metric_name)]
    all_labels.extend((str(name), str(val)) for name, val in labels)

    sample = Sample(
        value=float(value),
        timestamp_ms=timestamp_ms if timestamp_ms is not None else now_ms()
    )
    return TimeSeries(labels=tuple(all_labels), samples=(sample,))


def flatten_series(series: List[TimeSeries]) -> List[dict]:
    """Plain-dict view of series, used for dry-run logging."""
    return [
        {
            "labels": dict(ts.labels),
            "samples": [[sample.value, sample.timestamp_ms] for sample in ts.samples],
        }
        for ts in series
    ]
