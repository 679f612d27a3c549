"""Run the engine once per target and hold its metrics to a time limit.

The engine may exit non-zero after printing valid metric lines, so its
combined stdout/stderr is always kept and the exit status is only logged.
"""

import argparse
import os
import subprocess
import sys
from dataclasses import dataclass
from typing import Optional

import pandas as pd
import yaml

from conditions import env_for_tags
from probe_logging import configure_logging, get_logger
from report_parser import assert_below, metric_seconds

log = get_logger("perf_check")

ENGINE_COMMAND = (sys.executable, "-m", "ui_performance")
MAIN_PAGE_METRIC = "main_page_load_time"
COMPONENT_METRIC = "subcomponent_load_time"
# same status the shell reports for a command killed by `timeout`
TIMEOUT_RETURNCODE = 124


# ================= INPUTS =================

def _text(stream):
    if not stream:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


def _env_value(value):
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def load_env_file(path):
    if not path:
        return {}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping of environment variables")
    return {str(k): _env_value(v) for k, v in data.items()}


def load_component_rows(path):
    df = pd.read_csv(path, dtype=str).fillna("")
    if "selector" not in df.columns:
        raise ValueError(f"{path} needs a 'selector' column")
    if "expectedText" not in df.columns:
        df["expectedText"] = ""
    return df[["selector", "expectedText"]].to_dict(orient="records")


@dataclass
class EngineRun:
    url: str
    output: str
    returncode: int
    selector: Optional[str] = None
    expected_text: Optional[str] = None


# ================= ORCHESTRATION =================

class PerfCheck:
    def __init__(self, env_file=None, tags=(), scenario=None, base_env=None,
                 command=ENGINE_COMMAND, runner=None, timeout=None):
        self.env_vars = load_env_file(env_file)
        self.tags = tuple(tags or ())
        self.scenario = scenario
        self.base_env = dict(os.environ if base_env is None else base_env)
        self.command = list(command)
        self.runner = runner or subprocess.run
        self.timeout = timeout
        self.main_page_run = None
        self.component_runs = []

    def build_env(self, url, selector=None, expected_text=None):
        env = dict(self.base_env)
        env.update(self.env_vars)
        env.update(env_for_tags(self.tags))
        if self.scenario:
            env["SCENARIO_NAME"] = self.scenario
        if self.tags:
            env["SCENARIO_TAGS"] = ", ".join(self.tags)
        env["TEST_URL"] = url
        if selector:
            env["SUBCOMPONENT_SELECTOR"] = selector
            env["EXPECTED_TEXT"] = expected_text or ""
        else:
            env.pop("SUBCOMPONENT_SELECTOR", None)
            env.pop("EXPECTED_TEXT", None)
        return env

    def run_engine(self, url, selector=None, expected_text=None):
        if not url:
            raise ValueError("TEST_URL is not set. Provide the page url before running the engine.")
        target = selector or url
        try:
            completed = self.runner(
                self.command,
                env=self.build_env(url, selector, expected_text),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            output = _text(exc.stdout) + _text(exc.stderr)
            returncode = TIMEOUT_RETURNCODE
            log.warning(f"Engine run for {target} timed out after {exc.timeout}s (partial output captured)")
        else:
            output = _text(completed.stdout) + _text(completed.stderr)
            returncode = completed.returncode
            if returncode == 0:
                log.info(f"Engine run for {target} completed successfully")
            else:
                log.warning(f"Engine run for {target} exited with {returncode} (output captured)")
        log.debug(f"Engine output for {target}:\n{output}")
        return EngineRun(url=url, output=output, returncode=returncode,
                         selector=selector, expected_text=expected_text)

    def run_main_page(self, url):
        log.info(f"Running engine with TEST_URL={url}")
        self.main_page_run = self.run_engine(url)
        return self.main_page_run

    def run_subcomponents(self, url, rows):
        self.component_runs = []
        for row in rows:
            selector = row.get("selector")
            expected_text = row.get("expectedText") or None
            log.info(f"Running engine for subcomponent: {selector} with TEST_URL={url}")
            self.component_runs.append(self.run_engine(url, selector, expected_text))
        return self.component_runs

    def assert_main_page_under(self, limit):
        if self.main_page_run is None:
            raise RuntimeError("No engine output found for main page. Did you run the main page?")
        seconds = metric_seconds(self.main_page_run.output, MAIN_PAGE_METRIC)
        log.info(f"Main page load time: {seconds:.2f}s (limit: {limit}s)")
        return assert_below(seconds, limit, "Main page load time")

    def assert_each_subcomponent_under(self, limit):
        if not self.component_runs:
            raise RuntimeError("No engine outputs found. Did you run the subcomponents?")
        results = {}
        for run in self.component_runs:
            seconds = metric_seconds(run.output, COMPONENT_METRIC, f"for selector {run.selector}")
            log.info(f"Subcomponent {run.selector} load time: {seconds:.2f}s (limit: {limit}s)")
            results[run.selector] = assert_below(
                seconds, limit, f"Subcomponent load time for selector {run.selector}"
            )
        return results


# ================= CLI =================

def parse_args(argv=None):
    p = argparse.ArgumentParser("UI Performance Check")
    p.add_argument("--url", required=True, help="Page url to measure")
    p.add_argument("--limit", type=float, required=True, help="Load time limit in seconds (strict)")
    p.add_argument("--components", help="CSV with selector,expectedText columns; omit to measure the page")
    p.add_argument("--env-file", help="YAML file with engine environment variables")
    p.add_argument("--tags", default="", help="Comma separated scenario tags, e.g. @4G,@LowCPU")
    p.add_argument("--scenario", help="Scenario name used in screenshots and metrics")
    p.add_argument("--timeout", type=float, help="Seconds before an engine run is killed")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))

    tags = [t.strip() for t in args.tags.split(",") if t.strip()]
    check = PerfCheck(env_file=args.env_file, tags=tags, scenario=args.scenario, timeout=args.timeout)

    log.info(f"=== STARTING SCENARIO: {args.scenario or args.url} ===")
    log.info(f"Associated Tags: {', '.join(tags) or 'None'}")
    try:
        if args.components:
            check.run_subcomponents(args.url, load_component_rows(args.components))
            check.assert_each_subcomponent_under(args.limit)
        else:
            check.run_main_page(args.url)
            check.assert_main_page_under(args.limit)
    except (AssertionError, LookupError) as exc:
        log.error(str(exc))
        log.info(f"=== COMPLETED SCENARIO: {args.scenario or args.url} - STATUS: FAILED ===")
        return 1

    log.info(f"=== COMPLETED SCENARIO: {args.scenario or args.url} - STATUS: PASSED ===")
    return 0


if __name__ == "__main__":
    sys.exit(main())
