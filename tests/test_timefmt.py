import math

import pytest

from medley.utils.timefmt import format_time, parse_time


def test_format_time_basic():
    assert format_time(0) == "00:00:00"
    assert format_time(61.9) == "00:01:01"
    assert format_time(3723) == "01:02:03"
    assert format_time(100 * 3600 + 5) == "100:00:05"


@pytest.mark.parametrize("bad", [-1, -0.5, math.inf, -math.inf, math.nan, None, "abc"])
def test_format_time_unusable_input(bad):
    assert format_time(bad) == "00:00:00"


def test_parse_time_accepted_shapes():
    assert parse_time("1:2:3") == 3723
    assert parse_time("61") == 61
    assert parse_time("02:30") == 150
    assert parse_time(" 00:00:01.5 ") == 1.5
    assert parse_time("0") == 0


@pytest.mark.parametrize(
    "text",
    ["", "   ", "2:70", "60:00", "a:b:c", "1::2", "1:2:3:4", "-1", "1:-2", "inf", "1:nan"],
)
def test_parse_time_invalid(text):
    assert parse_time(text) is None


@pytest.mark.parametrize("text", ["00:00:00", "01:59:59", "12:00:30", "00:09:07"])
def test_round_trip_is_stable(text):
    first = parse_time(text)
    assert parse_time(format_time(first)) == first
