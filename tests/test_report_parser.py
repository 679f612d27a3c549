import math

import pytest

from report_parser import (
    MetricNotFoundError,
    ThresholdExceededError,
    assert_below,
    metric_seconds,
    read_metric,
)

ENGINE_OUTPUT = """
[INFO] [09:26:53] [VU 1] [Iter 0] Navigating to: https://example.test
main_page_load_time.....: avg=996ms    min=996ms med=996ms max=996ms p(90)=996ms p(95)=996ms
subcomponent_load_time..: avg=3.62s min=3.62s med=3.62s max=3.62s p(90)=3.62s p(95)=3.62s
"""


def test_milliseconds_are_converted_to_seconds():
    assert metric_seconds(ENGINE_OUTPUT, "main_page_load_time") == 0.996


def test_seconds_are_used_as_is():
    reading = read_metric(ENGINE_OUTPUT, "subcomponent_load_time")

    assert reading.unit == "s"
    assert reading.seconds == 3.62


def test_first_matching_line_wins():
    output = "x.....: avg=100ms\nx.....: avg=900ms\n"

    assert metric_seconds(output, "x") == 0.1


def test_metric_without_avg_is_not_found():
    output = "main_page_load_time.....: min=996ms max=996ms"

    with pytest.raises(MetricNotFoundError) as err:
        metric_seconds(output, "main_page_load_time", "for selector #cart")

    assert "for selector #cart" in str(err.value)
    assert output in str(err.value)
    assert err.value.output == output


def test_empty_output_is_not_found():
    with pytest.raises(MetricNotFoundError):
        read_metric("", "main_page_load_time")


def test_value_equal_to_limit_fails():
    with pytest.raises(ThresholdExceededError) as err:
        assert_below(5.0, 5, "Main page load time")

    assert err.value.seconds == 5.0
    assert "not less than 5s" in str(err.value)


def test_value_below_limit_passes():
    assert assert_below(4.99, 5, "Main page load time") == 4.99


def test_nan_always_fails():
    with pytest.raises(AssertionError):
        assert_below(math.nan, 5, "Main page load time")
