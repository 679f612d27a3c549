"""Run configuration for one measurement iteration."""

import math
import re
from dataclasses import dataclass
from typing import Optional, Tuple

URL_PATTERN = re.compile(r"^https?://\S+$")
SELECTOR_PATTERN = re.compile(r"^[a-zA-Z0-9\[\]=\"':._#\-\s(),>+~*|^$]+$")

# key: (default, floor)
NUMERIC_SETTINGS = {
    "VUS": (1, 1),
    "ITERATIONS": (1, 1),
    "USER_CONNECTIVITY_TIME": (1000, 100),
    "DOM_TIMEOUT": (20000, 5000),
    "ELEMENT_TIMEOUT": (10000, 1000),
    "COMPONENT_TIMEOUT": (5000, 1000),
    "HTTP_TIMEOUT": (5000, 1000),
    "SCREENSHOT_TIMEOUT": (500, 200),
    "POLL_INTERVAL": (100, 50),
    "CPU_THROTTLING": (1, 1),
}


class ConfigError(ValueError):
    """Raised with every violated rule, not only the first one."""

    def __init__(self, errors):
        self.errors = list(errors)
        lines = "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(f"Environment validation failed:\n{lines}")


@dataclass(frozen=True)
class Timeouts:
    navigation: int = 20000
    element: int = 10000
    component: int = 5000
    http: int = 5000
    screenshot: int = 500

    @property
    def network_idle(self):
        return self.http * 2


@dataclass(frozen=True)
class Features:
    screenshots: bool = True
    network_logging: bool = True
    highlighting: bool = True


@dataclass(frozen=True)
class RunConfig:
    """Immutable per-iteration configuration."""

    test_url: str
    selector: Optional[str] = None
    expected_text: Optional[str] = None
    vus: int = 1
    iterations: int = 1
    connectivity_threshold: int = 1000
    timeouts: Timeouts = Timeouts()
    poll_interval: int = 100
    network_condition: str = "WIFI"
    network_profile: str = "WiFi"
    cpu_condition: str = "HighCPU"
    cpu_throttling: int = 1
    features: Features = Features()
    headless: bool = True
    scenario_name: str = "unknown_scenario"
    scenario_tags: Tuple[str, ...] = ()
    screenshot_dir: str = "screenshots"
    time_unit: str = "ms"
    pushgateway_url: Optional[str] = None
    prom_job: str = "ui_performance"

    @property
    def component_mode(self):
        return bool(self.selector)


def _text(env, key):
    value = env.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _number(env, key):
    default, floor = NUMERIC_SETTINGS[key]
    raw = _text(env, key)
    try:
        value = float(raw) if raw is not None else 0
    except ValueError:
        value = 0
    if not value or not math.isfinite(value):
        value = default
    return max(floor, int(value))


def _enabled(env, key):
    return _text(env, key) != "false"


def _tags(raw):
    if not raw:
        return ()
    return tuple(t.strip() for t in raw.split(",") if t.strip())


def resolve_config(env):
    errors = []

    test_url = _text(env, "TEST_URL")
    if not test_url:
        errors.append("TEST_URL is required and cannot be empty")
    elif not URL_PATTERN.match(test_url):
        errors.append(
            f"TEST_URL must be a valid URL with http or https protocol, got: {test_url}"
        )

    selector = _text(env, "SUBCOMPONENT_SELECTOR")
    if selector and not SELECTOR_PATTERN.match(selector):
        errors.append(
            f"SUBCOMPONENT_SELECTOR must be a valid CSS selector, got: {selector}"
        )

    time_unit = _text(env, "REPORT_TIME_UNIT") or "ms"
    if time_unit not in ("ms", "s"):
        errors.append(f"REPORT_TIME_UNIT must be 'ms' or 's', got: {time_unit}")

    if errors:
        raise ConfigError(errors)

    return RunConfig(
        test_url=test_url,
        selector=selector,
        expected_text=_text(env, "EXPECTED_TEXT"),
        vus=_number(env, "VUS"),
        iterations=_number(env, "ITERATIONS"),
        connectivity_threshold=_number(env, "USER_CONNECTIVITY_TIME"),
        timeouts=Timeouts(
            navigation=_number(env, "DOM_TIMEOUT"),
            element=_number(env, "ELEMENT_TIMEOUT"),
            component=_number(env, "COMPONENT_TIMEOUT"),
            http=_number(env, "HTTP_TIMEOUT"),
            screenshot=_number(env, "SCREENSHOT_TIMEOUT"),
        ),
        poll_interval=_number(env, "POLL_INTERVAL"),
        network_condition=_text(env, "NETWORK_CONDITION") or "WIFI",
        network_profile=_text(env, "NETWORK_PROFILE") or "WiFi",
        cpu_condition=_text(env, "CPU_CONDITION") or "HighCPU",
        cpu_throttling=_number(env, "CPU_THROTTLING"),
        features=Features(
            screenshots=_enabled(env, "ENABLE_SCREENSHOTS"),
            network_logging=_enabled(env, "ENABLE_NETWORK_LOGGING"),
            highlighting=_enabled(env, "ENABLE_HIGHLIGHTING"),
        ),
        headless=_enabled(env, "HEADLESS"),
        scenario_name=_text(env, "SCENARIO_NAME") or "unknown_scenario",
        scenario_tags=_tags(_text(env, "SCENARIO_TAGS")),
        screenshot_dir=_text(env, "SCREENSHOT_DIR") or "screenshots",
        time_unit=time_unit,
        pushgateway_url=_text(env, "PUSHGATEWAY_URL"),
        prom_job=_text(env, "PROM_JOB") or "ui_performance",
    )
