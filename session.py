"""Browser launch and the per-iteration context/page scope."""

from contextlib import contextmanager

from probe_logging import get_logger

log = get_logger("session")

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
]


def launch_browser(playwright, config):
    return playwright.chromium.launch(headless=config.headless, args=LAUNCH_ARGS)


def close_quietly(resource, label, logger=None):
    logger = logger or log
    if resource is None:
        return
    try:
        resource.close()
        logger.debug(f"{label} closed")
    except Exception as exc:
        logger.warning(f"Cleanup failed for {label}: {exc}")


@contextmanager
def iteration_session(browser, config, logger=None):
    """Yield a fresh page in its own context; both are closed on every exit path."""
    logger = logger or log
    context = None
    page = None
    try:
        logger.debug("Creating browser context")
        context = browser.new_context()
        context.set_default_timeout(float(config.timeouts.element))
        context.set_default_navigation_timeout(float(config.timeouts.navigation))
        page = context.new_page()
        yield page
    finally:
        close_quietly(page, "Page", logger)
        close_quietly(context, "Browser context", logger)
