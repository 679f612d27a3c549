"""Read metric summary lines from captured engine output and check thresholds."""

import re
from dataclasses import dataclass


class MetricNotFoundError(LookupError):
    def __init__(self, metric, output, context=""):
        self.metric = metric
        self.output = output
        where = f" {context}" if context else ""
        super().__init__(f"Could not find {metric} metric{where} in output. Output was:\n{output}")


class ThresholdExceededError(AssertionError):
    def __init__(self, label, seconds, limit):
        self.label = label
        self.seconds = seconds
        self.limit = limit
        super().__init__(f"{label} was {seconds:.2f}s, which is not less than {limit}s.")


@dataclass(frozen=True)
class MetricReading:
    metric: str
    value: float
    unit: str

    @property
    def seconds(self):
        return self.value / 1000 if self.unit == "ms" else self.value


def _pattern(metric):
    return re.compile(re.escape(metric) + r"[.\s]*:\s*avg=([0-9.]+)(ms|s)")


def read_metric(output, metric, context=""):
    """First `avg=` reading for `metric`; raises MetricNotFoundError if absent."""
    text = output or ""
    match = _pattern(metric).search(text)
    if not match:
        raise MetricNotFoundError(metric, text, context)
    try:
        value = float(match.group(1))
    except ValueError:
        raise MetricNotFoundError(metric, text, context) from None
    return MetricReading(metric=metric, value=value, unit=match.group(2))


def metric_seconds(output, metric, context=""):
    return read_metric(output, metric, context).seconds


def assert_below(seconds, limit, label):
    # strict: a value equal to the limit fails
    if seconds != seconds or not seconds < limit:
        raise ThresholdExceededError(label, seconds, limit)
    return seconds
