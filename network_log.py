"""Request/response correlation and the API performance summary."""

import statistics
from dataclasses import dataclass

from probe_logging import get_logger
from probe_utils import ms_now

log = get_logger("network")

API_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE"}
API_MARKER = "/api/"
TABLE_ROWS = 10
URL_WIDTH = 68


@dataclass
class NetworkLogEntry:
    method: str
    url: str
    response_time: float
    status: int


def _method(request):
    method = getattr(request, "method", "")
    if callable(method):
        method = method()
    return str(method or "").upper()


class NetworkCorrelator:
    """Pair page requests with their responses for one iteration."""

    def __init__(self, clock=ms_now):
        self.clock = clock
        self.entries = []
        self._pending = {}
        self._page = None

    def attach(self, page):
        page.on("request", self.on_request)
        page.on("response", self.on_response)
        page.on("requestfailed", self.on_request_failed)
        self._page = page

    def detach(self):
        page, self._page = self._page, None
        if page is None:
            return
        for event, handler in (
            ("request", self.on_request),
            ("response", self.on_response),
            ("requestfailed", self.on_request_failed),
        ):
            try:
                page.remove_listener(event, handler)
            except Exception as exc:
                log.debug(f"Could not remove {event} listener: {exc}")

    @property
    def pending_count(self):
        return len(self._pending)

    def on_request(self, request):
        method = _method(request)
        if method not in API_METHODS:
            return
        # keep the request itself so its id() cannot be reused while pending
        self._pending[id(request)] = (request, self.clock(), method)

    def on_response(self, response):
        request = response.request
        pending = self._pending.pop(id(request), None)
        if pending is None:
            return
        _, started, method = pending
        self.entries.append(
            NetworkLogEntry(
                method=method,
                url=str(request.url),
                response_time=self.clock() - started,
                status=int(response.status or 0),
            )
        )

    def on_request_failed(self, request):
        self._pending.pop(id(request), None)

    def drain(self):
        entries, self.entries = self.entries, []
        return entries


def api_path(url):
    index = url.find(API_MARKER)
    return url[index:] if index >= 0 else url


def log_network_performance(entries, sink=None, logger=None):
    """Log the slowest API calls as a table and record api_response_time samples."""
    logger = logger or log
    api_requests = sorted(
        (e for e in entries if API_MARKER in e.url),
        key=lambda e: e.response_time,
        reverse=True,
    )
    if not api_requests:
        logger.info("No API requests detected")
        return []

    if sink is not None:
        for entry in api_requests:
            sink.add("api_response_time", entry.response_time, {"url": api_path(entry.url)})

    border = "-" * 8, "-" * 17, "-" * 9, "-" * (URL_WIDTH + 2)
    logger.info("API Performance Summary:")
    logger.info("+" + "+".join(border) + "+")
    logger.info(f"| {'METHOD':<6} | {'RESPONSE (ms)':<15} | {'STATUS':<7} | {'URL':<{URL_WIDTH}} |")
    logger.info("+" + "+".join(border) + "+")
    for entry in api_requests[:TABLE_ROWS]:
        url = api_path(entry.url)
        if len(url) > URL_WIDTH:
            url = url[: URL_WIDTH - 3] + "..."
        logger.info(
            f"| {entry.method:<6} | {round(entry.response_time):>15} | {entry.status:>7} | {url:<{URL_WIDTH}} |"
        )
    logger.info("+" + "+".join(border) + "+")

    if len(api_requests) > TABLE_ROWS:
        logger.info(f"... and {len(api_requests) - TABLE_ROWS} more API requests")

    times = [e.response_time for e in api_requests]
    logger.info(
        f"API Stats - Count: {len(times)}, Avg: {statistics.mean(times):.1f}ms, "
        f"Min: {min(times):.0f}ms, Max: {max(times):.0f}ms"
    )
    return api_requests
