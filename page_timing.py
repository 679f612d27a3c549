"""Page-level load milestones for runs without a component selector."""

from dataclasses import dataclass

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from probe_logging import get_logger
from probe_utils import ms_now

log = get_logger("page_timing")


@dataclass
class PageTiming:
    dom_content_loaded: float = 0
    network_idle: float = 0
    total: float = 0
    network_idle_success: bool = False


def measure_page_performance(page, config, sink, navigation_started=None, clock=ms_now, logger=None):
    """Time DOM-content-loaded, then network idle, from navigation start.

    A network-idle timeout only marks the result as degraded.
    """
    logger = logger or log
    timings = PageTiming()
    started = clock() if navigation_started is None else navigation_started

    page.wait_for_load_state("domcontentloaded", timeout=config.timeouts.navigation)
    timings.dom_content_loaded = clock() - started
    sink.add("dom_content_loaded_time", timings.dom_content_loaded)

    idle_started = clock()
    try:
        page.wait_for_load_state("networkidle", timeout=config.timeouts.network_idle)
        timings.network_idle_success = True
    except PlaywrightTimeoutError as exc:
        logger.warning(f"Network idle timeout: {exc}")
    timings.network_idle = clock() - idle_started
    sink.add("network_idle_time", timings.network_idle)

    timings.total = clock() - started
    sink.add("main_page_load_time", timings.total)

    logger.info(
        f"Page performance - DOM: {timings.dom_content_loaded:.0f}ms, "
        f"Network: {timings.network_idle:.0f}ms, Total: {timings.total:.0f}ms"
    )
    return timings
