"""
データアクセス

すべての関数は user_id で絞り込む. 他人のレコードや削除済みのレコードは NotFound.
エントリ / イベント / タスクの削除は deleted_at を埋めるだけ (論理削除).
"""
import logging
import re
from datetime import date, datetime, time

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import NotFound as HTTPNotFound

from .dates import parse_ymd
from .models import (
    CALENDAR_KINDS, EVENT_TYPES,
    Category, Entry, Event, Task, db, utcnow,
)

logger = logging.getLogger(__name__)

TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")


class NotFound(HTTPNotFound):
    pass


class ValidationError(ValueError):
    pass


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("commit failed")
        raise


def _or_404(obj, what: str, record_id):
    if obj is None:
        raise NotFound(f"{what} {record_id} not found")
    return obj


# 入力の整形

def to_date(value, field: str = "date", required: bool = True) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None or not str(value).strip():
        if required:
            raise ValidationError(f"{field} is required")
        return None
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        # '2024-2-1' のような書き方も受ける
        try:
            return parse_ymd(str(value))
        except ValueError:
            raise ValidationError(f"{field} must be YYYY-MM-DD: {value!r}") from None


def to_time(value) -> time | None:
    if isinstance(value, time):
        return value
    if value is None or not str(value).strip():
        return None
    m = TIME_RE.match(str(value).strip())
    if not m:
        raise ValidationError(f"start_time must be HH:MM: {value!r}")
    return time(int(m.group(1)), int(m.group(2)), int(m.group(3) or 0))


def _required_text(value, field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return value


def _optional_text(value) -> str | None:
    value = (value or "").strip()
    return value or None


def _date_range(start, end) -> tuple[date, date]:
    start = to_date(start, "start")
    end = to_date(end, "end")
    if start > end:
        raise ValidationError(f"start {start} is after end {end}")
    return start, end


# カテゴリ

def fetch_categories(user_id: int) -> list[Category]:
    return (
        Category.query.filter_by(user_id=user_id, is_active=True)
        .order_by(Category.sort_order.asc(), Category.created_at.asc(), Category.id.asc())
        .all()
    )


def fetch_category(user_id: int, category_id: int, active_only: bool = True) -> Category:
    q = Category.query.filter_by(user_id=user_id, id=category_id)
    if active_only:
        q = q.filter_by(is_active=True)
    return _or_404(q.first(), "category", category_id)


def create_category(user_id: int, name: str, color_bg: str, color_text: str,
                    sort_order: int | None = None) -> Category:
    if sort_order is None:
        # 末尾に追加
        sort_order = Category.query.filter_by(user_id=user_id, is_active=True).count()
    category = Category(
        user_id=user_id,
        name=_required_text(name, "name"),
        color_bg=_required_text(color_bg, "color_bg"),
        color_text=_required_text(color_text, "color_text"),
        sort_order=sort_order,
        is_active=True,
    )
    db.session.add(category)
    _commit()
    logger.info("category %s created for user %s", category.id, user_id)
    return category


def update_category(user_id: int, category_id: int, name: str | None = None,
                    color_bg: str | None = None, color_text: str | None = None,
                    sort_order: int | None = None, is_active: bool | None = None) -> Category:
    # None の項目は変更しない
    category = fetch_category(user_id, category_id, active_only=False)
    if name is not None:
        category.name = _required_text(name, "name")
    if color_bg is not None:
        category.color_bg = _required_text(color_bg, "color_bg")
    if color_text is not None:
        category.color_text = _required_text(color_text, "color_text")
    if sort_order is not None:
        category.sort_order = int(sort_order)
    if is_active is not None:
        category.is_active = bool(is_active)
    _commit()
    return category


def deactivate_category(user_id: int, category_id: int) -> Category:
    category = update_category(user_id, category_id, is_active=False)
    logger.info("category %s deactivated for user %s", category_id, user_id)
    return category


# エントリ

def fetch_entries_by_range(user_id: int, start, end) -> list[Entry]:
    start, end = _date_range(start, end)
    return (
        Entry.query.filter(
            Entry.user_id == user_id,
            Entry.deleted_at.is_(None),
            Entry.entry_date >= start,
            Entry.entry_date <= end,
        )
        .order_by(Entry.occurred_at.asc(), Entry.id.asc())
        .all()
    )


def fetch_entry(user_id: int, entry_id: int) -> Entry:
    entry = Entry.query.filter_by(user_id=user_id, id=entry_id, deleted_at=None).first()
    return _or_404(entry, "entry", entry_id)


def create_entry(user_id: int, entry_date, category_id: int, content: str,
                 title: str | None = None, occurred_at: datetime | None = None) -> Entry:
    entry = Entry(
        user_id=user_id,
        entry_date=to_date(entry_date, "entry_date"),
        category_id=_active_category_id(user_id, category_id),
        title=_optional_text(title),
        content=_required_text(content, "content"),
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(entry)
    _commit()
    logger.info("entry %s created for user %s on %s", entry.id, user_id, entry.entry_date)
    return entry


def update_entry(user_id: int, entry_id: int, category_id: int, content: str,
                 title: str | None = None, entry_date=None) -> Entry:
    entry = fetch_entry(user_id, entry_id)
    entry.category_id = _active_category_id(user_id, category_id)
    entry.title = _optional_text(title)
    entry.content = _required_text(content, "content")
    # 日付の移動は指定があるときだけ
    if entry_date:
        entry.entry_date = to_date(entry_date, "entry_date")
    _commit()
    return entry


def delete_entry(user_id: int, entry_id: int) -> int:
    entry = fetch_entry(user_id, entry_id)
    entry.deleted_at = utcnow()
    _commit()
    logger.info("entry %s deleted for user %s", entry_id, user_id)
    return entry.id


def _active_category_id(user_id: int, category_id) -> int:
    if category_id in (None, ""):
        raise ValidationError("category is required")
    try:
        category_id = int(category_id)
    except (TypeError, ValueError):
        raise ValidationError(f"invalid category: {category_id!r}") from None
    if Category.query.filter_by(user_id=user_id, id=category_id, is_active=True).first() is None:
        raise ValidationError(f"unknown category: {category_id}")
    return category_id


def _optional_category_id(user_id: int, category_id) -> int | None:
    if category_id in (None, ""):
        return None
    return _active_category_id(user_id, category_id)


# イベント (約束 / 記念日)

def fetch_events_by_range(user_id: int, start, end) -> list[Event]:
    start, end = _date_range(start, end)
    return (
        Event.query.filter(
            Event.user_id == user_id,
            Event.deleted_at.is_(None),
            Event.solar_date >= start,
            Event.solar_date <= end,
        )
        # 時刻なし (終日) が先
        .order_by(Event.solar_date.asc(), Event.start_time.is_not(None), Event.start_time.asc(),
                  Event.id.asc())
        .all()
    )


def fetch_event(user_id: int, event_id: int) -> Event:
    event = Event.query.filter_by(user_id=user_id, id=event_id, deleted_at=None).first()
    return _or_404(event, "event", event_id)


def _event_fields(user_id: int, event_type: str, title: str, solar_date, is_all_day: bool,
                  start_time=None, content: str | None = None, category_id=None,
                  calendar_kind: str = "solar", is_recurring_yearly: bool = False) -> dict:
    if event_type not in EVENT_TYPES:
        raise ValidationError(f"invalid event_type: {event_type!r}")
    if calendar_kind not in CALENDAR_KINDS:
        raise ValidationError(f"invalid calendar_kind: {calendar_kind!r}")
    is_all_day = bool(is_all_day)
    return {
        "event_type": event_type,
        "title": _required_text(title, "title"),
        "content": _optional_text(content),
        "category_id": _optional_category_id(user_id, category_id),
        "calendar_kind": calendar_kind,
        "is_recurring_yearly": bool(is_recurring_yearly),
        "solar_date": to_date(solar_date, "solar_date"),
        # 終日なら時刻は持たない
        "start_time": None if is_all_day else to_time(start_time),
        "is_all_day": is_all_day,
    }


def create_event(user_id: int, **fields) -> Event:
    event = Event(user_id=user_id, **_event_fields(user_id, **fields))
    db.session.add(event)
    _commit()
    logger.info("event %s created for user %s on %s", event.id, user_id, event.solar_date)
    return event


def update_event(user_id: int, event_id: int, **fields) -> Event:
    event = fetch_event(user_id, event_id)
    for name, value in _event_fields(user_id, **fields).items():
        setattr(event, name, value)
    _commit()
    return event


def delete_event(user_id: int, event_id: int) -> int:
    event = fetch_event(user_id, event_id)
    event.deleted_at = utcnow()
    _commit()
    logger.info("event %s deleted for user %s", event_id, user_id)
    return event.id


# タスク

def fetch_tasks_by_range(user_id: int, start, end, include_unscheduled: bool = True) -> list[Task]:
    start, end = _date_range(start, end)
    in_range = and_(Task.due_date >= start, Task.due_date <= end)
    if include_unscheduled:
        in_range = or_(in_range, Task.due_date.is_(None))
    return (
        Task.query.filter(
            Task.user_id == user_id,
            Task.deleted_at.is_(None),
            in_range,
        )
        # 期限なしは最後
        .order_by(Task.due_date.is_(None), Task.due_date.asc(), Task.created_at.asc(), Task.id.asc())
        .all()
    )


def fetch_task(user_id: int, task_id: int) -> Task:
    task = Task.query.filter_by(user_id=user_id, id=task_id, deleted_at=None).first()
    return _or_404(task, "task", task_id)


def create_task(user_id: int, title: str, notes: str | None = None, due_date=None) -> Task:
    task = Task(
        user_id=user_id,
        title=_required_text(title, "title"),
        notes=_optional_text(notes),
        due_date=to_date(due_date, "due_date", required=False),
        is_done=False,
    )
    db.session.add(task)
    _commit()
    logger.info("task %s created for user %s", task.id, user_id)
    return task


_UNSET = object()


def update_task(user_id: int, task_id: int, title: str | None = None, notes=_UNSET,
                due_date=_UNSET, is_done: bool | None = None) -> Task:
    # notes / due_date は None で消せるので, 未指定と区別する
    task = fetch_task(user_id, task_id)
    if title is not None:
        task.title = _required_text(title, "title")
    if notes is not _UNSET:
        task.notes = _optional_text(notes)
    if due_date is not _UNSET:
        task.due_date = to_date(due_date, "due_date", required=False)
    if is_done is not None:
        task.is_done = bool(is_done)
    _commit()
    return task


def delete_task(user_id: int, task_id: int) -> int:
    task = fetch_task(user_id, task_id)
    task.deleted_at = utcnow()
    _commit()
    logger.info("task %s deleted for user %s", task_id, user_id)
    return task.id
