"""Metric series and the end-of-run summary printed on stdout.

Report lines look like::

    main_page_load_time.....: avg=996ms min=996ms med=996ms max=996ms p(90)=996ms p(95)=996ms

and are the only channel through which measurements leave the engine.
"""

import statistics
import sys
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Histogram, push_to_gateway

from probe_logging import get_logger
from probe_utils import TimeFormatter, percentile

log = get_logger("metrics")

#  Production UX latency buckets (ms)
LATENCY_BUCKETS_MS = (
    100, 250, 500, 750,
    1000, 1500, 2000,
    3000, 4000, 5000,
    7000, 10000, 15000, 30000
)

SERIES_DOCS = {
    "main_page_load_time": "Page load time from navigation start to network idle",
    "dom_content_loaded_time": "Time to DOMContentLoaded",
    "network_idle_time": "Time from DOMContentLoaded to network idle",
    "subcomponent_load_time": "Time until a component passes its readiness checklist",
    "api_response_time": "API request/response latency",
}


@dataclass
class MetricSample:
    name: str
    value: float
    tags: Optional[Dict[str, str]] = field(default=None)


class MetricsSink:
    """Append-only named series, shared by all workers of a run."""

    def __init__(self, scenario="unknown_scenario", registry=None):
        self.scenario = scenario
        self.registry = registry or CollectorRegistry()
        self._series = defaultdict(list)
        self._histograms = {}
        self._lock = threading.Lock()

    def add(self, name, value, tags=None):
        sample = MetricSample(name=name, value=float(value), tags=dict(tags) if tags else None)
        self._series[name].append(sample)
        self._histogram(name).labels(self.scenario).observe(sample.value)
        return sample

    def _histogram(self, name):
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(
                    f"{name}_ms",
                    SERIES_DOCS.get(name, name),
                    ["scenario"],
                    buckets=LATENCY_BUCKETS_MS,
                    registry=self.registry,
                )
            return self._histograms[name]

    def samples(self, name):
        return list(self._series.get(name, ()))

    def values(self, name):
        return [s.value for s in self._series.get(name, ())]

    def names(self):
        return [name for name, samples in self._series.items() if samples]


def summarize(values):
    return {
        "avg": statistics.mean(values),
        "min": min(values),
        "med": statistics.median(values),
        "max": max(values),
        "p(90)": percentile(values, 90),
        "p(95)": percentile(values, 95),
    }


def format_summary_lines(sink, unit="ms"):
    formatter = TimeFormatter(unit)
    names = sorted(sink.names())
    if not names:
        return []
    width = max(len(n) for n in names) + 5
    lines = []
    for name in names:
        stats = summarize(sink.values(name))
        fields = " ".join(f"{key}={formatter.format(value)}" for key, value in stats.items())
        lines.append(f"{name.ljust(width, '.')}: {fields}")
    return lines


def emit_report(sink, unit="ms", stream=None):
    stream = stream or sys.stdout
    for line in format_summary_lines(sink, unit):
        stream.write(line + "\n")
    stream.flush()


def push_metrics(sink, gateway_url, job, grouping_key=None):
    if not gateway_url:
        return False
    try:
        push_to_gateway(gateway_url, job=job, registry=sink.registry, grouping_key=grouping_key or {})
    except Exception as exc:
        log.warning(f"Could not push metrics to {gateway_url}: {exc}")
        return False
    log.info(f"Pushed metrics for job: {job}")
    return True
