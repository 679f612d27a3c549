import dataclasses
import io

import pytest
from playwright.sync_api import Error as PlaywrightError

import ui_performance
from conftest import FakeBrowser, FakePage, FakePlaywright
from metrics_report import MetricsSink
from screenshots import ScreenshotCapture

ENV = {"TEST_URL": "https://example.test", "ENABLE_SCREENSHOTS": "false"}


class BrokenNavigationPage(FakePage):
    def goto(self, url, wait_until=None, timeout=None):
        super().goto(url, wait_until, timeout)
        raise PlaywrightError("net::ERR_NAME_NOT_RESOLVED")


def test_connectivity_pass(config, recorder):
    playwright = FakePlaywright(status=200)

    assert ui_performance.check_connectivity(playwright, config, recorder) is True
    assert playwright.request_context.requests == [("https://example.test", config.timeouts.http)]
    assert playwright.request_context.disposed


def test_connectivity_bad_status_only_warns(config, recorder):
    playwright = FakePlaywright(status=503)

    assert ui_performance.check_connectivity(playwright, config, recorder) is False
    assert "HTTP Status: 503 (FAIL)" in recorder.messages("INFO")
    assert any("continuing" in m for m in recorder.messages("WARNING"))


def test_connectivity_transport_error_is_fatal(config, recorder):
    playwright = FakePlaywright(error=PlaywrightError("getaddrinfo ENOTFOUND"))

    with pytest.raises(PlaywrightError):
        ui_performance.check_connectivity(playwright, config, recorder)
    assert playwright.request_context.disposed


def test_page_mode_records_page_series(clock, config, recorder):
    page = FakePage(clock, dcl_ms=400, idle_ms=1200)
    sink = MetricsSink()
    shots = ScreenshotCapture(config, 1, 0, recorder)

    result = ui_performance.measure_ui_performance(page, config, sink, shots, recorder)

    assert result["type"] == "page"
    assert page.gotos == [("https://example.test", "commit", config.timeouts.navigation)]
    assert set(sink.names()) == {"dom_content_loaded_time", "network_idle_time", "main_page_load_time"}
    assert len(page.screenshots) == 1 and "_page_pass_" in page.screenshots[0]
    assert sorted(page.removed) == ["request", "requestfailed", "response"]


def test_component_mode_records_component_series(clock, config, recorder):
    config = dataclasses.replace(config, selector="#cart", expected_text="Checkout")
    page = FakePage(clock, text="Proceed to Checkout")
    sink = MetricsSink()
    shots = ScreenshotCapture(config, 1, 0, recorder)

    result = ui_performance.measure_ui_performance(page, config, sink, shots, recorder)

    assert result["type"] == "component"
    assert page.gotos[0][1] == "domcontentloaded"
    assert sink.names() == ["subcomponent_load_time"]
    assert "_component_pass_" in page.screenshots[0]


def test_failed_iteration_takes_critical_screenshot_and_closes(clock, config):
    page = BrokenNavigationPage(clock)

    with pytest.raises(PlaywrightError):
        ui_performance.run_iteration(FakePlaywright(), FakeBrowser(page), config, MetricsSink(), 2, 5)

    assert len(page.screenshots) == 1
    assert "_error_fail_VU2_Iter5.png" in page.screenshots[0]
    assert page.closed and page.context.closed


def test_invalid_environment_exits_with_two():
    out = io.StringIO()

    assert ui_performance.main({}, stream=out) == 2
    assert out.getvalue() == ""


def _worker(failures):
    def worker(config, sink, worker_id):
        sink.add("main_page_load_time", 996)
        return failures
    return worker


def test_successful_run_prints_report_and_exits_zero():
    out = io.StringIO()

    assert ui_performance.main(dict(ENV), stream=out, worker=_worker(0)) == 0
    assert out.getvalue().startswith("main_page_load_time.....: avg=996ms")


def test_failed_iterations_exit_one_after_report():
    out = io.StringIO()

    assert ui_performance.main(dict(ENV, VUS="3"), stream=out, worker=_worker(1)) == 1
    assert "avg=996ms" in out.getvalue()


def test_workers_run_once_per_virtual_user(config):
    seen = []

    def worker(cfg, sink, worker_id):
        seen.append(worker_id)
        return 0

    config = dataclasses.replace(config, vus=4)

    assert ui_performance.run_workers(config, MetricsSink(), worker=worker) == 0
    assert sorted(seen) == [1, 2, 3, 4]


def test_worker_counts_failed_iterations(config, monkeypatch):
    class FakeSyncPlaywright:
        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

    class Browser:
        def close(self):
            pass

    monkeypatch.setattr(ui_performance, "sync_playwright", FakeSyncPlaywright)
    monkeypatch.setattr(ui_performance, "launch_browser", lambda pw, cfg: Browser())
    config = dataclasses.replace(config, iterations=3)
    calls = []

    def iteration(playwright, browser, cfg, sink, worker_id, iteration_id):
        calls.append(iteration_id)
        if iteration_id == 1:
            raise RuntimeError("boom")

    assert ui_performance.run_worker(config, MetricsSink(), 1, iteration=iteration) == 1
    assert calls == [0, 1, 2]
