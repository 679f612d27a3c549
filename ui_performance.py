"""UI performance engine.

Configured entirely from environment variables (see probe_config). Runs
VUS workers x ITERATIONS iterations, each in its own browser context, and
prints one summary line per metric series to stdout when done. Logs go to
stderr. Exit status: 2 on configuration errors, 1 if any iteration failed,
0 otherwise; metric lines are printed in both of the latter cases.
"""

import os
import sys
from concurrent.futures import ThreadPoolExecutor

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from conditions import apply_simulation
from metrics_report import MetricsSink, emit_report, push_metrics
from network_log import NetworkCorrelator, log_network_performance
from page_timing import measure_page_performance
from probe_config import ConfigError, resolve_config
from probe_logging import IterationLogger, configure_logging, get_logger
from probe_utils import clean_error_message, ms_now
from readiness import validate_component_state, wait_for_component_ready
from screenshots import ScreenshotCapture
from session import close_quietly, iteration_session, launch_browser

log = get_logger()


# ================= CONNECTIVITY =================

def check_connectivity(playwright, config, logger=None):
    """Plain HTTP GET before any browser work; only transport errors are fatal."""
    logger = logger or log
    request = playwright.request.new_context()
    try:
        started = ms_now()
        try:
            response = request.get(config.test_url, timeout=config.timeouts.http)
        except PlaywrightError as exc:
            logger.error(f"HTTP connectivity check failed: {clean_error_message(exc)}")
            raise
        duration = ms_now() - started

        status_ok = response.status == 200
        fast_enough = duration < config.connectivity_threshold
        logger.info(f"HTTP Status: {response.status} ({'PASS' if status_ok else 'FAIL'})")
        logger.info(
            f"HTTP Response: {duration:.0f}ms "
            f"(< {config.connectivity_threshold}ms: {'PASS' if fast_enough else 'FAIL'})"
        )
        if not (status_ok and fast_enough):
            logger.warning("HTTP connectivity checks failed, but continuing with test")
        return status_ok and fast_enough
    finally:
        try:
            request.dispose()
        except PlaywrightError as exc:
            logger.debug(f"Could not dispose request context: {exc}")


# ================= MEASUREMENT =================

def measure_component(page, config, sink, shots, logger):
    logger.info(f"Measuring component performance: {config.selector}")
    state = wait_for_component_ready(
        page,
        config.selector,
        config.expected_text,
        timeout=config.timeouts.component,
        poll_interval=config.poll_interval,
        logger=logger,
    )
    try:
        validate_component_state(state, config.selector, config.expected_text, logger)
    except AssertionError:
        shots.capture(page, "component", "fail", config.selector, config.selector, config.expected_text)
        raise

    sink.add("subcomponent_load_time", state.load_time)
    logger.info(f"Component load time: {state.load_time:.0f}ms")
    shots.capture(page, "component", "pass", config.selector, config.selector, config.expected_text)
    return {"type": "component", "load_time": state.load_time, "state": state}


def measure_page(page, config, sink, shots, logger, navigation_started):
    logger.info("Measuring page performance")
    try:
        timings = measure_page_performance(page, config, sink, navigation_started=navigation_started, logger=logger)
    except PlaywrightError as exc:
        logger.error(f"Page performance measurement failed: {clean_error_message(exc)}")
        shots.capture(page, "page", "fail", config.test_url)
        raise
    shots.capture(page, "page", "pass" if timings.network_idle_success else "partial", config.test_url)
    return {"type": "page", "timings": timings}


def measure_ui_performance(page, config, sink, shots, logger=None):
    logger = logger or log
    correlator = None
    if config.features.network_logging:
        correlator = NetworkCorrelator()
        correlator.attach(page)

    try:
        apply_simulation(page, config, logger)

        logger.info(f"Navigating to: {config.test_url}")
        navigation_started = ms_now()
        page.goto(
            config.test_url,
            wait_until="domcontentloaded" if config.component_mode else "commit",
            timeout=config.timeouts.navigation,
        )

        if config.component_mode:
            return measure_component(page, config, sink, shots, logger)
        return measure_page(page, config, sink, shots, logger, navigation_started)
    finally:
        if correlator is not None:
            correlator.detach()
            entries = correlator.drain()
            if entries:
                log_network_performance(entries, sink, logger)


def run_iteration(playwright, browser, config, sink, worker_id, iteration_id):
    logger = IterationLogger(log, worker_id, iteration_id)
    started = ms_now()
    shots = ScreenshotCapture(config, worker_id, iteration_id, logger)

    check_connectivity(playwright, config, logger)

    with iteration_session(browser, config, logger) as page:
        try:
            result = measure_ui_performance(page, config, sink, shots, logger)
        except Exception as exc:
            logger.error(f"Test iteration failed after {ms_now() - started:.0f}ms: {clean_error_message(exc)}")
            shots.capture(page, "error", "fail", "critical_failure")
            raise

    logger.info(f"Test iteration completed in {ms_now() - started:.0f}ms")
    logger.info(f"Result: {result['type']} measurement completed successfully")
    return result


# ================= WORKERS =================

def run_worker(config, sink, worker_id, iteration=run_iteration):
    failures = 0
    with sync_playwright() as playwright:
        browser = launch_browser(playwright, config)
        try:
            for iteration_id in range(config.iterations):
                try:
                    iteration(playwright, browser, config, sink, worker_id, iteration_id)
                except Exception as exc:
                    failures += 1
                    IterationLogger(log, worker_id, iteration_id).error(
                        f"Iteration error: {clean_error_message(exc)}"
                    )
        finally:
            close_quietly(browser, "Browser")
    return failures


def run_workers(config, sink, worker=run_worker):
    with ThreadPoolExecutor(max_workers=config.vus) as pool:
        futures = [pool.submit(worker, config, sink, vu) for vu in range(1, config.vus + 1)]
        return sum(f.result() for f in futures)


def log_run_header(config):
    log.info("Starting UI Performance Test")
    log.info(f"Test URL: {config.test_url}")
    log.info(f"VUs: {config.vus}, Iterations: {config.iterations}")
    log.info(
        f"Features - Screenshots: {config.features.screenshots}, "
        f"Network Logging: {config.features.network_logging}, "
        f"Highlighting: {config.features.highlighting}"
    )


# ================= MAIN =================

def main(env=None, stream=None, worker=run_worker):
    env = os.environ if env is None else env
    configure_logging(env.get("LOG_LEVEL", "INFO"))

    try:
        config = resolve_config(env)
    except ConfigError as exc:
        log.error(str(exc))
        return 2
    log_run_header(config)
    log.info("Environment validation completed")

    sink = MetricsSink(scenario=config.scenario_name)
    try:
        failures = run_workers(config, sink, worker=worker)
    finally:
        emit_report(sink, config.time_unit, stream)
        push_metrics(sink, config.pushgateway_url, config.prom_job, {"scenario": config.scenario_name})

    if failures:
        log.error(f"{failures} iteration(s) failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
