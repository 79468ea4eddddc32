"""
旧暦 (太陰太陽暦) の表示用ラベル

変換そのものは korean_lunar_calendar に任せる. ラベルは飾りなので,
変換できないときは例外を出さずに空文字を返す.
"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta

from korean_lunar_calendar import KoreanLunarCalendar

from .dates import add_months, normalize_month, parse_ymd

logger = logging.getLogger(__name__)

LEAP_PREFIX = "閏"
LABEL_PREFIX = "旧暦"


class LunarError(ValueError):
    pass


@dataclass(frozen=True)
class LunarDate:
    year: int
    month: int
    day: int
    is_leap: bool


def solar_to_lunar(d: date) -> LunarDate:
    cal = KoreanLunarCalendar()
    # 対応範囲外だと False が返ってくる
    if not cal.setSolarDate(d.year, d.month, d.day):
        raise LunarError(f"unsupported solar date: {d.isoformat()}")
    return LunarDate(
        year=cal.lunarYear,
        month=cal.lunarMonth,
        day=cal.lunarDay,
        is_leap=bool(cal.isIntercalation),
    )


def _convert(solar_key: str) -> LunarDate | None:
    try:
        return solar_to_lunar(parse_ymd(solar_key))
    except (ValueError, TypeError, AttributeError) as e:
        logger.debug("lunar conversion failed for %r: %s", solar_key, e)
        return None


def lunar_label(solar_key: str) -> str:
    lunar = _convert(solar_key)
    if lunar is None:
        return ""
    leap = LEAP_PREFIX if lunar.is_leap else ""
    return f"{LABEL_PREFIX} {lunar.year}年{leap}{lunar.month}月{lunar.day}日"


def lunar_short_label(solar_key: str) -> str:
    """
    グリッドのセル用. ふだんは日だけ ('19'), 朔日は月/日 ('11/1', 閏月なら '閏2/1')
    """
    lunar = _convert(solar_key)
    if lunar is None or not lunar.month or not lunar.day:
        return ""
    if lunar.day == 1:
        leap = LEAP_PREFIX if lunar.is_leap else ""
        return f"{leap}{lunar.month}/{lunar.day}"
    return str(lunar.day)


def lunar_month_range(year: int, month0: int) -> str:
    # 月初と月末の旧暦月. ヘッダー表示用
    next_year, next_month0 = add_months(year, month0, 1)
    this_year, this_month0 = normalize_month(year, month0)
    try:
        first = date(this_year, this_month0 + 1, 1)
        last = date(next_year, next_month0 + 1, 1) - timedelta(days=1)
    except (ValueError, OverflowError) as e:
        logger.debug("lunar month range failed for %s-%s: %s", year, month0, e)
        return ""

    a = _convert(first.isoformat())
    b = _convert(last.isoformat())
    if a is None or b is None:
        return ""

    def fmt(lunar: LunarDate) -> str:
        return f"{LEAP_PREFIX if lunar.is_leap else ''}{lunar.month}月"

    if (a.month, a.is_leap) == (b.month, b.is_leap):
        return f"{LABEL_PREFIX} {fmt(a)}"
    return f"{LABEL_PREFIX} {fmt(a)} - {fmt(b)}"
