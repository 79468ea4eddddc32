"""
月グリッドと日付キーまわり

DateKey は 'YYYY-MM-DD' の文字列. グリッドのセルと各レコードはこのキーで突き合わせる.
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import IntEnum

GRID_DAYS = 42  # 6 週


class WeekStart(IntEnum):
    # calendar.Calendar(firstweekday=...) にそのまま渡せる値
    MONDAY = calendar.MONDAY
    SUNDAY = calendar.SUNDAY

    @classmethod
    def parse(cls, value: str) -> "WeekStart":
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise ValueError(f"unknown week start: {value!r}") from None


@dataclass(frozen=True)
class DayCell:
    date: date
    is_current_month: bool
    key: str


def pad2(n: int) -> str:
    return f"{n:02d}"


def ymd(d: date) -> str:
    return f"{d.year:04d}-{pad2(d.month)}-{pad2(d.day)}"


def parse_ymd(s: str) -> date:
    """
    'YYYY-MM-DD' を date に. 月日が欠けていれば 1 とみなす ('2024-02' -> 2024-02-01)
    """
    parts = s.strip().split("-")
    if not parts or not parts[0]:
        raise ValueError(f"invalid date key: {s!r}")
    y = int(parts[0])
    m = int(parts[1]) if len(parts) > 1 and parts[1] else 1
    d = int(parts[2]) if len(parts) > 2 and parts[2] else 1
    return date(y, m, d)


def to_date_key(value) -> str | None:
    """
    date / datetime / 文字列を DateKey にそろえる. 空なら None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ymd(value.date())
    if isinstance(value, date):
        return ymd(value)
    value = str(value).strip()
    if not value:
        return None
    # '2024-02-01T09:00:00' のような値も日付部分だけ使う
    return ymd(parse_ymd(value[:10]))


def normalize_month(year: int, month0: int) -> tuple[int, int]:
    # month0=12 -> 翌年 1 月, month0=-1 -> 前年 12 月
    return year + month0 // 12, month0 % 12


def add_months(year: int, month0: int, delta: int) -> tuple[int, int]:
    return normalize_month(year, month0 + delta)


def month_title(year: int, month0: int) -> str:
    year, month0 = normalize_month(year, month0)
    return f"{year}年{month0 + 1}月"


def is_same_ymd(a: date, b: date) -> bool:
    return ymd(a) == ymd(b)


def build_month_grid(year: int, month0: int,
                     week_start: WeekStart = WeekStart.MONDAY) -> list[DayCell]:
    """
    year / month0 (0 = 1 月) の 6 週 42 日ぶんのセルを返す

    先頭セルは week_start の曜日にそろえる. 1 日がちょうど週頭でも 42 日ぶん作るので,
    最終週がまるごと翌月になることもある.
    """
    year, month0 = normalize_month(year, month0)
    first = date(year, month0 + 1, 1)

    # date.weekday() は月曜 = 0. week_start との差だけ戻る
    offset = (first.weekday() - week_start) % 7
    start = first - timedelta(days=offset)

    cells = []
    for i in range(GRID_DAYS):
        d = start + timedelta(days=i)
        cells.append(DayCell(
            date=d,
            is_current_month=(d.month == month0 + 1),
            key=ymd(d),
        ))
    return cells


def grid_range(cells: list[DayCell]) -> tuple[str, str]:
    # グリッドの表示範囲 (両端を含む)
    return cells[0].key, cells[-1].key


def weekday_headers(week_start: WeekStart = WeekStart.MONDAY) -> list[str]:
    cal = calendar.Calendar(firstweekday=week_start)
    names = ["月", "火", "水", "木", "金", "土", "日"]
    return [names[i] for i in cal.iterweekdays()]
