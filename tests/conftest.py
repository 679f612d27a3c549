"""Shared fakes: a millisecond clock and in-memory stand-ins for Playwright objects."""

import os
import sys

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from probe_config import RunConfig  # noqa: E402
from readiness import PAINT_COMPLETION_JS  # noqa: E402
from screenshots import HIGHLIGHT_JS  # noqa: E402


class FakeClock:
    def __init__(self, start=0.0):
        self.now = float(start)

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class RecordingLogger:
    def __init__(self):
        self.records = []

    def _add(self, level, msg):
        self.records.append((level, str(msg)))

    def debug(self, msg, *args, **kwargs):
        self._add("DEBUG", msg)

    def info(self, msg, *args, **kwargs):
        self._add("INFO", msg)

    def warning(self, msg, *args, **kwargs):
        self._add("WARNING", msg)

    def error(self, msg, *args, **kwargs):
        self._add("ERROR", msg)

    def messages(self, level=None):
        return [m for lvl, m in self.records if level is None or lvl == level]


class FakeElement:
    def __init__(self, page):
        self.page = page
        self.visible_calls = 0
        self.enabled_calls = 0

    def is_visible(self):
        self.visible_calls += 1
        return self.page.element_visible()

    def is_enabled(self):
        self.enabled_calls += 1
        return self.page.enabled

    def text_content(self):
        return self.page.text


class FakeLocator:
    def __init__(self, page, selector):
        self.page = page
        self.selector = selector

    @property
    def first(self):
        return self

    def is_visible(self):
        if self.page.text_locator_error:
            raise PlaywrightError("strict mode violation")
        return self.page.text_visible


class FakeCDPSession:
    def __init__(self):
        self.sent = []

    def send(self, method, params=None):
        self.sent.append((method, params))
        return {}


class FakeContext:
    def __init__(self, page=None, fail_cdp=False):
        self.page = page
        self.fail_cdp = fail_cdp
        self.cdp = FakeCDPSession()
        self.closed = False
        self.close_error = None
        self.default_timeout = None
        self.default_navigation_timeout = None

    def new_cdp_session(self, page):
        if self.fail_cdp:
            raise PlaywrightError("CDP session unavailable")
        return self.cdp

    def set_default_timeout(self, ms):
        self.default_timeout = ms

    def set_default_navigation_timeout(self, ms):
        self.default_navigation_timeout = ms

    def new_page(self):
        return self.page

    def close(self):
        self.closed = True
        if self.close_error:
            raise self.close_error


class FakePage:
    """Timeline-driven page; every wait advances the shared fake clock."""

    def __init__(self, clock, exists_at=0, visible_at=0, enabled=True, text="", text_visible=True,
                 paint_at=0, dcl_ms=0, idle_ms=0, idle_times_out=False):
        self.clock = clock
        self.exists_at = exists_at
        self.visible_at = visible_at
        self.hidden_at = None
        self.enabled = enabled
        self.text = text
        self.text_visible = text_visible
        self.text_locator_error = False
        # style attributes the page reports for highlighted elements
        self.highlight_styles = []
        self.paint_at = paint_at
        self.dcl_ms = dcl_ms
        self.idle_ms = idle_ms
        self.idle_times_out = idle_times_out
        self.query_errors = 0
        self.screenshot_error = None
        self.query_calls = 0
        self.evaluated = []
        self.screenshots = []
        self.waits = []
        self.listeners = {}
        self.removed = []
        self.gotos = []
        self.closed = False
        self.element = FakeElement(self)
        self.context = FakeContext(self)

    def is_true(self, since):
        return since is not None and self.clock() >= since

    def element_visible(self):
        if not self.is_true(self.visible_at):
            return False
        return self.hidden_at is None or self.clock() < self.hidden_at

    # navigation / events
    def goto(self, url, wait_until=None, timeout=None):
        self.gotos.append((url, wait_until, timeout))

    def on(self, event, handler):
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event, handler):
        self.removed.append(event)
        self.listeners.get(event, []).remove(handler)

    def emit(self, event, payload):
        for handler in list(self.listeners.get(event, [])):
            handler(payload)

    # waiting
    def wait_for_timeout(self, ms):
        self.waits.append(ms)
        self.clock.advance(ms)

    def wait_for_load_state(self, state, timeout=None):
        if state == "domcontentloaded":
            self.clock.advance(self.dcl_ms)
            return
        if self.idle_times_out:
            self.clock.advance(timeout)
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")
        self.clock.advance(self.idle_ms)

    # dom
    def query_selector(self, selector):
        self.query_calls += 1
        if self.query_errors:
            self.query_errors -= 1
            raise PlaywrightError("Execution context was destroyed")
        return self.element if self.is_true(self.exists_at) else None

    def locator(self, selector):
        return FakeLocator(self, selector)

    def evaluate(self, script, arg=None):
        self.evaluated.append((script, arg))
        if script == PAINT_COMPLETION_JS:
            return self.paint_at is not None and self.clock() >= self.paint_at
        if script == HIGHLIGHT_JS:
            return list(self.highlight_styles)
        return True

    def screenshot(self, path=None, full_page=False):
        if self.screenshot_error:
            raise self.screenshot_error
        self.screenshots.append(path)
        return b""

    def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, page):
        self.context = page.context
        self.closed = False

    def new_context(self):
        return self.context

    def close(self):
        self.closed = True


class FakeResponse:
    def __init__(self, status=200):
        self.status = status


class FakeRequestContext:
    def __init__(self, status=200, error=None):
        self.status = status
        self.error = error
        self.disposed = False
        self.requests = []

    def get(self, url, timeout=None):
        self.requests.append((url, timeout))
        if self.error:
            raise self.error
        return FakeResponse(self.status)

    def dispose(self):
        self.disposed = True


class FakeAPIRequest:
    def __init__(self, context):
        self.context = context

    def new_context(self):
        return self.context


class FakePlaywright:
    def __init__(self, status=200, error=None):
        self.request_context = FakeRequestContext(status, error)
        self.request = FakeAPIRequest(self.request_context)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return RecordingLogger()


@pytest.fixture
def config(tmp_path):
    return RunConfig(test_url="https://example.test", screenshot_dir=str(tmp_path / "screenshots"))
