"""Component readiness polling.

A component is ready once every entry of an ordered checklist holds in the
same tick: the element exists, is visible, is enabled (and therefore
interactable), contains the expected text, that text is visible, and the page
has committed a paint pass. Each tick starts from a fresh state and stops at
the first unmet check, so a condition that passed earlier can fail later if
the DOM changes underneath.
"""

from dataclasses import dataclass
from typing import Callable, NamedTuple, Optional

from playwright.sync_api import Error as PlaywrightError

from probe_logging import get_logger
from probe_utils import ms_now

log = get_logger("readiness")

MIN_POLL_INTERVAL = 50

# Two animation frames after document ready means layout has been committed.
PAINT_COMPLETION_JS = """
() => new Promise(resolve => {
    if (document.readyState === 'complete') {
        requestAnimationFrame(() => {
            requestAnimationFrame(() => {
                document.body.offsetHeight;
                resolve(performance.now() > 0);
            });
        });
    } else {
        resolve(false);
    }
})
"""


class ComponentValidationError(AssertionError):
    def __init__(self, selector, failed_checks):
        self.selector = selector
        self.failed_checks = list(failed_checks)
        super().__init__(
            f'Component validation failed for "{selector}". Failed: {", ".join(self.failed_checks)}'
        )


@dataclass
class ComponentState:
    is_visible: bool = False
    is_enabled: bool = False
    is_interactable: bool = False
    contains_expected_text: bool = False
    expected_text_is_visible: bool = False
    paint_work_completed: bool = False
    load_time: float = 0


class _Tick:
    def __init__(self, page, selector, expected_text, state):
        self.page = page
        self.selector = selector
        self.expected_text = expected_text
        self.state = state
        self.element = None


def _element_exists(tick):
    tick.element = tick.page.query_selector(tick.selector)
    return tick.element is not None


def _is_visible(tick):
    return tick.element.is_visible()


def _is_enabled(tick):
    return tick.element.is_enabled()


def _is_interactable(tick):
    return tick.state.is_visible and tick.state.is_enabled


def _contains_expected_text(tick):
    text = tick.element.text_content() or ""
    return tick.expected_text in text


def _expected_text_is_visible(tick):
    try:
        return tick.page.locator(f"text={tick.expected_text}").first.is_visible()
    except PlaywrightError:
        return tick.state.is_visible


def _paint_work_completed(tick):
    try:
        return bool(tick.page.evaluate(PAINT_COMPLETION_JS))
    except PlaywrightError as exc:
        log.debug(f"Paint completion check failed: {exc}")
        return False


class ReadinessCheck(NamedTuple):
    name: str
    field: Optional[str]
    probe: Callable


class ReadinessChecklist:
    """Ordered readiness predicates for one selector."""

    def __init__(self, selector, expected_text=None):
        self.selector = selector
        self.expected_text = expected_text or None
        self.checks = self._build()

    def _build(self):
        checks = [
            ReadinessCheck("Component exists", None, _element_exists),
            ReadinessCheck("Component is visible", "is_visible", _is_visible),
            ReadinessCheck("Component is enabled", "is_enabled", _is_enabled),
            ReadinessCheck("Component is interactable", "is_interactable", _is_interactable),
        ]
        if self.expected_text:
            checks.append(
                ReadinessCheck("Component contains expected text", "contains_expected_text", _contains_expected_text)
            )
            checks.append(
                ReadinessCheck("Expected text is visible", "expected_text_is_visible", _expected_text_is_visible)
            )
        checks.append(ReadinessCheck("Component paint work completed", "paint_work_completed", _paint_work_completed))
        return checks

    def evaluate(self, page, logger=None):
        state = ComponentState()
        if not self.expected_text:
            state.contains_expected_text = True
            state.expected_text_is_visible = True

        tick = _Tick(page, self.selector, self.expected_text, state)
        for check in self.checks:
            try:
                passed = bool(check.probe(tick))
            except PlaywrightError as exc:
                (logger or log).debug(f"Component check '{check.name}' failed: {exc}")
                passed = False
            if check.field:
                setattr(state, check.field, passed)
            if not passed:
                break
        return state


class ReadinessPoller:
    def __init__(self, page, checklist, timeout, poll_interval, clock=ms_now, logger=None):
        self.page = page
        self.checklist = checklist
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.clock = clock
        self.log = logger or log

    def wait(self):
        """Poll until the checklist holds or the deadline passes.

        Never raises on timeout; the last observed state is returned with
        load_time set to the timeout.
        """
        min_interval = max(MIN_POLL_INTERVAL, self.poll_interval)
        start = self.clock()
        last_check = None
        state = ComponentState()

        self.log.debug(f"Waiting for component: {self.checklist.selector} (timeout: {self.timeout}ms)")

        while self.clock() - start < self.timeout:
            now = self.clock()
            if last_check is not None and now - last_check < min_interval:
                self.page.wait_for_timeout(min_interval - (now - last_check))
                continue
            last_check = now

            state = self.checklist.evaluate(self.page, self.log)
            if state.paint_work_completed:
                state.load_time = self.clock() - start
                self.log.debug(f"Component ready in {state.load_time:.0f}ms")
                return state

            self.page.wait_for_timeout(self.poll_interval)

        state.load_time = float(self.timeout)
        self.log.warning(f"Component readiness timeout after {self.timeout}ms")
        return state


def wait_for_component_ready(page, selector, expected_text=None, timeout=5000, poll_interval=100,
                             clock=ms_now, logger=None):
    checklist = ReadinessChecklist(selector, expected_text)
    return ReadinessPoller(page, checklist, timeout, poll_interval, clock=clock, logger=logger).wait()


def component_checks(expected_text=None):
    checks = [
        ("Component is visible", lambda s: s.is_visible),
        ("Component is enabled", lambda s: s.is_enabled),
        ("Component is interactable", lambda s: s.is_interactable),
    ]
    if expected_text:
        checks.append(("Component contains expected text", lambda s: s.contains_expected_text))
        checks.append(("Expected text is visible", lambda s: s.expected_text_is_visible))
    checks.append(("Component paint work completed", lambda s: s.paint_work_completed))
    return checks


def failed_checks(state, expected_text=None):
    return [name for name, check in component_checks(expected_text) if not check(state)]


def validate_component_state(state, selector, expected_text=None, logger=None):
    """Log every check and raise ComponentValidationError listing all failures."""
    logger = logger or log
    logger.info(f'Validating component: "{selector}"')
    if expected_text:
        logger.info(f'Expected text: "{expected_text}"')

    for name, check in component_checks(expected_text):
        logger.info(f"{'PASS' if check(state) else 'FAIL'} {name}")

    failed = failed_checks(state, expected_text)

    if failed:
        error = ComponentValidationError(selector, failed)
        logger.error(str(error))
        raise error

    logger.info("All component checks passed")
