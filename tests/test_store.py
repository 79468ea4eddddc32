from datetime import date, datetime, time, timezone

import pytest

from calio import store


def test_categories_sorted_and_deactivated(ctx, user_id):
    b = store.create_category(user_id, "仕事", "#000000", "#ffffff", sort_order=2)
    a = store.create_category(user_id, "日記", "#E9D5FF", "#111827", sort_order=1)

    assert [c.id for c in store.fetch_categories(user_id)] == [a.id, b.id]

    store.deactivate_category(user_id, b.id)
    assert [c.id for c in store.fetch_categories(user_id)] == [a.id]


def test_create_category_appends_to_end(ctx, user_id):
    first = store.create_category(user_id, "a", "#000000", "#ffffff")
    second = store.create_category(user_id, "b", "#000000", "#ffffff")
    assert (first.sort_order, second.sort_order) == (0, 1)


def test_update_category_only_changes_given_fields(ctx, user_id, category_id):
    updated = store.update_category(user_id, category_id, name="旅行")
    assert updated.name == "旅行"
    assert updated.color_bg == "#E9D5FF"

    with pytest.raises(store.ValidationError):
        store.update_category(user_id, category_id, name="  ")


def test_category_of_other_user_not_found(ctx, category_id, other_user_id):
    with pytest.raises(store.NotFound):
        store.deactivate_category(other_user_id, category_id)


def test_entries_by_range_inclusive_and_ordered(ctx, user_id, category_id):
    late = store.create_entry(user_id, "2024-02-01", category_id, "late",
                              occurred_at=datetime(2024, 2, 1, 12, tzinfo=timezone.utc))
    early = store.create_entry(user_id, "2024-02-01", category_id, "early",
                               occurred_at=datetime(2024, 2, 1, 8, tzinfo=timezone.utc))
    edge = store.create_entry(user_id, "2024-02-03", category_id, "edge")
    store.create_entry(user_id, "2024-02-04", category_id, "outside")

    entries = store.fetch_entries_by_range(user_id, "2024-02-01", "2024-02-03")
    assert [e.id for e in entries] == [early.id, late.id, edge.id]


def test_entry_requires_content_and_active_category(ctx, user_id, category_id):
    with pytest.raises(store.ValidationError):
        store.create_entry(user_id, "2024-02-01", category_id, "   ")
    with pytest.raises(store.ValidationError):
        store.create_entry(user_id, "2024-02-01", None, "text")
    with pytest.raises(store.ValidationError):
        store.create_entry(user_id, "2024/02/01", category_id, "text")

    store.deactivate_category(user_id, category_id)
    with pytest.raises(store.ValidationError):
        store.create_entry(user_id, "2024-02-01", category_id, "text")


def test_entry_update_and_soft_delete(ctx, user_id, category_id):
    entry = store.create_entry(user_id, "2024-02-01", category_id, "text", title="t")

    updated = store.update_entry(user_id, entry.id, category_id, "new text", title="", entry_date="2024-02-02")
    assert updated.title is None
    assert updated.entry_date == date(2024, 2, 2)

    # 日付を渡さなければそのまま
    store.update_entry(user_id, entry.id, category_id, "again")
    assert store.fetch_entry(user_id, entry.id).entry_date == date(2024, 2, 2)

    store.delete_entry(user_id, entry.id)
    assert store.fetch_entries_by_range(user_id, "2024-02-01", "2024-02-29") == []
    with pytest.raises(store.NotFound):
        store.fetch_entry(user_id, entry.id)


def test_entry_of_other_user_not_found(ctx, user_id, other_user_id, category_id):
    entry = store.create_entry(user_id, "2024-02-01", category_id, "mine")
    with pytest.raises(store.NotFound):
        store.fetch_entry(other_user_id, entry.id)
    with pytest.raises(store.NotFound):
        store.delete_entry(other_user_id, entry.id)
    assert store.fetch_entries_by_range(other_user_id, "2024-02-01", "2024-02-01") == []


def test_bad_range(ctx, user_id):
    with pytest.raises(store.ValidationError):
        store.fetch_entries_by_range(user_id, "2024-02-02", "2024-02-01")


def event_fields(**overrides):
    fields = {
        "event_type": "appointment",
        "title": "歯医者",
        "solar_date": "2024-02-05",
        "is_all_day": False,
        "start_time": "09:30",
    }
    fields.update(overrides)
    return fields


def test_event_all_day_drops_start_time(ctx, user_id):
    event = store.create_event(user_id, **event_fields(is_all_day=True))
    assert event.start_time is None
    assert event.calendar_kind == "solar"


def test_event_ordering(ctx, user_id):
    later = store.create_event(user_id, **event_fields(start_time="15:00"))
    all_day = store.create_event(user_id, **event_fields(is_all_day=True, title="誕生日",
                                                        event_type="anniversary",
                                                        is_recurring_yearly=True))
    earlier = store.create_event(user_id, **event_fields(start_time="08:00"))
    next_day = store.create_event(user_id, **event_fields(solar_date="2024-02-06", start_time="07:00"))

    events = store.fetch_events_by_range(user_id, "2024-02-01", "2024-02-29")
    assert [e.id for e in events] == [all_day.id, earlier.id, later.id, next_day.id]
    assert events[0].is_recurring_yearly


def test_event_validation(ctx, user_id):
    with pytest.raises(store.ValidationError):
        store.create_event(user_id, **event_fields(start_time="25:00"))
    with pytest.raises(store.ValidationError):
        store.create_event(user_id, **event_fields(event_type="meeting"))
    with pytest.raises(store.ValidationError):
        store.create_event(user_id, **event_fields(title=""))


def test_event_update_and_delete(ctx, user_id, category_id):
    event = store.create_event(user_id, **event_fields())
    updated = store.update_event(user_id, event.id, **event_fields(category_id=str(category_id),
                                                                    start_time="10:15"))
    assert updated.start_time == time(10, 15)
    assert updated.category.id == category_id

    store.delete_event(user_id, event.id)
    with pytest.raises(store.NotFound):
        store.fetch_event(user_id, event.id)


def test_tasks_range_and_unscheduled(ctx, user_id):
    none_a = store.create_task(user_id, "いつか", due_date="")
    dated = store.create_task(user_id, "提出", due_date="2024-02-05")
    none_b = store.create_task(user_id, "そのうち")
    store.create_task(user_id, "来月", due_date="2024-03-05")

    tasks = store.fetch_tasks_by_range(user_id, "2024-02-01", "2024-02-29")
    assert [t.id for t in tasks] == [dated.id, none_a.id, none_b.id]

    only_dated = store.fetch_tasks_by_range(user_id, "2024-02-01", "2024-02-29", include_unscheduled=False)
    assert [t.id for t in only_dated] == [dated.id]


def test_update_task(ctx, user_id):
    task = store.create_task(user_id, "提出", notes="メモ", due_date="2024-02-05")

    store.update_task(user_id, task.id, is_done=True)
    task = store.fetch_task(user_id, task.id)
    assert task.is_done
    assert task.notes == "メモ"

    store.update_task(user_id, task.id, due_date=None, notes="")
    task = store.fetch_task(user_id, task.id)
    assert task.due_date is None
    assert task.notes is None

    store.delete_task(user_id, task.id)
    with pytest.raises(store.NotFound):
        store.fetch_task(user_id, task.id)


def test_to_date_and_time():
    assert store.to_date(date(2024, 2, 1)) == date(2024, 2, 1)
    assert store.to_date("2024-2-1") == date(2024, 2, 1)
    assert store.to_date("", required=False) is None
    assert store.to_time("7:05") == time(7, 5)
    assert store.to_time("") is None
    with pytest.raises(store.ValidationError):
        store.to_date(None)
