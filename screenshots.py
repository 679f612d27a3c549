"""Screenshot evidence, with optional transient highlighting of the expected text."""

import os
from dataclasses import dataclass
from datetime import datetime, timezone

from probe_logging import get_logger
from probe_utils import safe

log = get_logger("screenshots")

SCENARIO_LIMIT = 30
TAGS_LIMIT = 20
TEXT_LIMIT = 15
FIELD_LIMIT = 20
TEXT_VISIBILITY_TIMEOUT = 2000

HIGHLIGHT_STYLE = {
    "backgroundColor": "rgba(255,255,0,0.8)",
    "padding": "4px 8px",
    "border": "2px solid rgba(255,165,0,0.9)",
    "borderRadius": "4px",
    "boxShadow": "0 0 8px rgba(255,165,0,0.6)",
    "fontWeight": "bold",
}

HIGHLIGHT_JS = """
([sel, text, style]) => {
    const element = document.querySelector(sel);
    window._highlightedElements = [];
    if (!element || !text) return [];
    const originals = [];
    const walker = document.createTreeWalker(element, NodeFilter.SHOW_TEXT, null, false);
    let node;
    while ((node = walker.nextNode())) {
        if (!node.textContent.includes(text)) continue;
        const parent = node.parentElement;
        if (!parent || parent.dataset.highlighted) continue;
        originals.push(parent.getAttribute("style"));
        Object.assign(parent.style, style);
        parent.dataset.highlighted = "true";
        window._highlightedElements.push(parent);
    }
    return originals;
}
"""

# originals[i] is the style attribute of the i-th highlighted element, null if it had none
UNHIGHLIGHT_JS = """
(originals) => {
    const highlighted = window._highlightedElements || [];
    highlighted.forEach((element, i) => {
        const original = originals[i];
        if (original === null || original === undefined) element.removeAttribute("style");
        else element.setAttribute("style", original);
        delete element.dataset.highlighted;
    });
    window._highlightedElements = null;
    return highlighted.length;
}
"""

TEXT_VISIBILITY_JS = """
([targetText, maxTimeout]) => new Promise(resolve => {
    const startTime = Date.now();
    const checkText = () => {
        if (Date.now() - startTime > maxTimeout) {
            resolve(false);
            return;
        }
        const walker = document.createTreeWalker(document.body, NodeFilter.SHOW_TEXT, null, false);
        let node;
        while ((node = walker.nextNode())) {
            if (!node.textContent.includes(targetText)) continue;
            const element = node.parentElement;
            if (element && element.offsetWidth > 0 && element.offsetHeight > 0) {
                const rect = element.getBoundingClientRect();
                if (rect.width > 0 && rect.height > 0) {
                    resolve(true);
                    return;
                }
            }
        }
        setTimeout(checkText, 100);
    };
    checkText();
})
"""

NEXT_PAINT_JS = "() => new Promise(resolve => requestAnimationFrame(() => requestAnimationFrame(resolve)))"


@dataclass
class ScreenshotRecord:
    path: str
    test_type: str
    status: str
    identifier: str = ""


def screenshot_filename(timestamp, scenario, tags, test_type, status, expected_text, worker_id, iteration_id):
    if not isinstance(tags, str):
        tags = " ".join(tags or ())
    parts = [
        safe(timestamp),
        safe(scenario or "unknown_scenario", SCENARIO_LIMIT),
        safe(tags, TAGS_LIMIT),
        safe(test_type, FIELD_LIMIT),
        safe(status, FIELD_LIMIT),
        safe(expected_text, TEXT_LIMIT),
        f"VU{safe(worker_id, FIELD_LIMIT)}",
        f"Iter{safe(iteration_id, FIELD_LIMIT)}",
    ]
    return "_".join(p for p in parts if p) + ".png"


def wait_for_text_visibility(page, text, timeout=TEXT_VISIBILITY_TIMEOUT, logger=None):
    logger = logger or log
    try:
        visible = bool(page.evaluate(TEXT_VISIBILITY_JS, [text, timeout]))
    except Exception as exc:
        logger.warning(f'Text visibility check failed for "{text}": {exc}')
        return False
    if visible:
        logger.debug(f'Text "{text}" is now visible')
    else:
        logger.warning(f'Text "{text}" visibility timeout after {timeout}ms')
    return visible


class ScreenshotCapture:
    """Best-effort screenshots named by scenario, outcome, worker and iteration."""

    def __init__(self, config, worker_id, iteration_id, logger=None, now=None):
        self.config = config
        self.worker_id = worker_id
        self.iteration_id = iteration_id
        self.log = logger or log
        self.now = now or (lambda: datetime.now(timezone.utc))

    def filename(self, test_type, status, expected_text=None):
        return screenshot_filename(
            self.now().strftime("%Y%m%dT%H%M%S%f"),
            self.config.scenario_name,
            self.config.scenario_tags,
            test_type,
            status,
            expected_text,
            self.worker_id,
            self.iteration_id,
        )

    def apply_highlighting(self, page, selector, expected_text):
        """Highlight the expected text and return the saved style attributes, or None."""
        if not self.config.features.highlighting:
            self.log.debug("Highlighting disabled, skipping")
            return None
        try:
            originals = list(page.evaluate(HIGHLIGHT_JS, [selector, expected_text, HIGHLIGHT_STYLE]) or [])
        except Exception as exc:
            self.log.warning(f"Could not highlight component {selector}: {exc}")
            return None

        try:
            page.wait_for_timeout(self.config.timeouts.screenshot)
            if expected_text:
                wait_for_text_visibility(page, expected_text, logger=self.log)
        except Exception as exc:
            self.log.warning(f"Highlight settle wait failed for {selector}: {exc}")
        self.log.debug(f"Applied highlighting to {selector} for text: {expected_text} ({len(originals)} elements)")
        return originals

    def remove_highlighting(self, page, originals):
        try:
            page.evaluate(UNHIGHLIGHT_JS, list(originals))
            self.log.debug("Highlighting removed successfully")
        except Exception as exc:
            self.log.warning(f"Could not clean up highlighting: {exc}")

    def capture(self, page, test_type, status, identifier="", selector=None, expected_text=None):
        if not self.config.features.screenshots:
            self.log.debug("Screenshots disabled, skipping")
            return None

        originals = None
        try:
            if selector and test_type == "component":
                originals = self.apply_highlighting(page, selector, expected_text)

            os.makedirs(self.config.screenshot_dir, exist_ok=True)
            path = os.path.join(self.config.screenshot_dir, self.filename(test_type, status, expected_text))

            page.evaluate(NEXT_PAINT_JS)
            page.wait_for_timeout(self.config.timeouts.screenshot)
            page.screenshot(path=path, full_page=True)
        except Exception as exc:
            self.log.error(f"Failed to take screenshot: {exc}")
            return None
        finally:
            if originals is not None:
                self.remove_highlighting(page, originals)

        self.log.info(f"Screenshot saved: {path} ({test_type}/{status})")
        return ScreenshotRecord(path=path, test_type=test_type, status=status, identifier=str(identifier or ""))
