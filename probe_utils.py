import math
import re
import time


def ms_now():
    return time.perf_counter() * 1000.0


def percentile(data, pct):
    if not data:
        return -1
    data = sorted(data)
    k = (len(data) - 1) * (pct / 100)
    f, c = math.floor(k), math.ceil(k)
    return data[int(k)] if f == c else data[f] + (data[c] - data[f]) * (k - f)


def safe(name, limit=None):
    """Reduce a value to [A-Za-z0-9_] so it can be used in a file name."""
    text = re.sub(r"[^A-Za-z0-9\s_]", "", "" if name is None else str(name))
    text = re.sub(r"\s+", "_", text.strip())
    if limit is not None:
        text = text[:limit]
    return text


def clean_error_message(message):
    if not message:
        return ""

    text = str(message).strip()
    marker = "===================================="
    if marker in text:
        text = text.split(marker, 1)[0].strip()

    if "\n" in text:
        text = text.splitlines()[0]

    return text


class TimeFormatter:
    """Utility to format time durations in ms or seconds based on user preference."""

    def __init__(self, unit):
        self.unit = unit
        self.label = "ms" if unit == "ms" else "s"

    def convert(self, value):
        if value is None or value < 0:
            return -1
        if self.unit == "ms":
            return round(value, 2)
        return round(value / 1000.0, 3)

    def format(self, value):
        converted = self.convert(value)
        digits = 2 if self.unit == "ms" else 3
        text = f"{converted:.{digits}f}".rstrip("0").rstrip(".") or "0"
        return f"{text}{self.label}"
