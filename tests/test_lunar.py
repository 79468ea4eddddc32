from datetime import date

import pytest

from calio.lunar import (
    LunarDate, LunarError, lunar_label, lunar_month_range,
    lunar_short_label, solar_to_lunar,
)


def test_solar_to_lunar_new_year():
    # 2024 年の旧正月
    assert solar_to_lunar(date(2024, 2, 10)) == LunarDate(2024, 1, 1, False)


def test_solar_to_lunar_leap_month():
    # 2023 年は閏 2 月がある
    lunar = solar_to_lunar(date(2023, 3, 22))
    assert (lunar.month, lunar.day, lunar.is_leap) == (2, 1, True)


def test_solar_to_lunar_out_of_range():
    with pytest.raises(LunarError):
        solar_to_lunar(date(2100, 1, 1))


def test_short_label():
    assert lunar_short_label("2024-02-10") == "1/1"
    assert lunar_short_label("2024-02-11") == "2"
    assert lunar_short_label("2023-03-22") == "閏2/1"
    assert lunar_short_label("2023-03-23") == "2"


def test_full_label():
    assert lunar_label("2024-02-10") == "旧暦 2024年1月1日"
    assert lunar_label("2023-03-22") == "旧暦 2023年閏2月1日"


@pytest.mark.parametrize("value", ["", "garbage", "2024-13-01", "2100-01-01", None])
def test_labels_fail_soft(value):
    assert lunar_label(value) == ""
    assert lunar_short_label(value) == ""


def test_month_range():
    # 2024-02-01 は旧暦 12 月, 2024-02-29 は旧暦 1 月
    assert lunar_month_range(2024, 1) == "旧暦 12月 - 1月"


def test_month_range_out_of_range():
    assert lunar_month_range(2100, 0) == ""


@pytest.mark.parametrize("year, month0", [(9999, 11), (10000, 0), (0, 0)])
def test_month_range_unrepresentable_year(year, month0):
    assert lunar_month_range(year, month0) == ""
