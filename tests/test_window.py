"""Tests for reboot window evaluation."""

from datetime import time

import pytest

from nixupgrade.core.window import RebootWindow, is_within_window, parse_time_of_day


def _window(lower: str, upper: str) -> RebootWindow:
    return RebootWindow(lower=parse_time_of_day(lower), upper=parse_time_of_day(upper))


class TestParseTimeOfDay:
    def test_parses_hh_mm(self) -> None:
        assert parse_time_of_day("03:45") == time(3, 45)

    def test_strips_whitespace(self) -> None:
        assert parse_time_of_day(" 23:59 ") == time(23, 59)

    @pytest.mark.parametrize("value", ["3:45", "24:00", "12:60", "noon", "", "12:00:00"])
    def test_rejects_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_time_of_day(value)

    def test_rejects_non_string(self) -> None:
        with pytest.raises(ValueError):
            parse_time_of_day(300)  # type: ignore[arg-type]


class TestIsWithinWindow:
    def test_no_window_always_allows(self) -> None:
        for now in (time(0, 0), time(12, 0), time(23, 59)):
            assert is_within_window(None, now) is True

    def test_inside_simple_window(self) -> None:
        assert is_within_window(_window("01:00", "05:00"), time(3, 0)) is True

    def test_outside_simple_window(self) -> None:
        assert is_within_window(_window("01:00", "05:00"), time(6, 0)) is False

    def test_bounds_are_inclusive(self) -> None:
        window = _window("01:00", "05:00")
        assert is_within_window(window, time(1, 0)) is True
        assert is_within_window(window, time(5, 0)) is True

    def test_seconds_ignored_at_upper_bound(self) -> None:
        assert is_within_window(_window("01:00", "05:00"), time(5, 0, 30)) is True

    def test_wrapping_window_late_evening(self) -> None:
        assert is_within_window(_window("22:00", "02:00"), time(23, 30)) is True

    def test_wrapping_window_early_morning(self) -> None:
        assert is_within_window(_window("22:00", "02:00"), time(1, 15)) is True

    def test_wrapping_window_midday_excluded(self) -> None:
        assert is_within_window(_window("22:00", "02:00"), time(12, 0)) is False

    def test_wrapping_window_midnight(self) -> None:
        assert is_within_window(_window("22:00", "02:00"), time(0, 0)) is True

    def test_single_minute_window(self) -> None:
        window = _window("04:00", "04:00")
        assert is_within_window(window, time(4, 0)) is True
        assert is_within_window(window, time(4, 1)) is False


class TestRebootWindowStr:
    def test_str_shows_both_bounds(self) -> None:
        assert str(_window("22:00", "02:30")) == "22:00-02:30"


class TestParseTimeOfDayDigits:
    def test_rejects_non_ascii_digits(self) -> None:
        with pytest.raises(ValueError):
            parse_time_of_day("٠١:٠٠")
