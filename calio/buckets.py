"""
日付ごとのまとめ

エントリ / イベント / タスクを DateKey ごとに並べる. 日付のないタスクは UNSCHEDULED へ.
"""
from .dates import to_date_key

# 'YYYY-MM-DD' とぶつからない値
UNSCHEDULED = "unscheduled"


def _accessor(date_field):
    if callable(date_field):
        return date_field
    return lambda record: getattr(record, date_field, None)


def bucket_by_date(records, date_field) -> dict[str, list]:
    """
    date_field は属性名か, レコードを受け取って日付を返す関数
    日付がない, または日付として読めないレコードは UNSCHEDULED へ.

    各バケツの中は入力順のまま. 重複除去や件数の打ち切りはしない.
    """
    get_date = _accessor(date_field)

    buckets: dict[str, list] = {}
    for record in records:
        try:
            key = to_date_key(get_date(record)) or UNSCHEDULED
        except ValueError:
            # 2024-02-30 のような壊れた日付も日付なし扱い
            key = UNSCHEDULED
        buckets.setdefault(key, []).append(record)
    return buckets


def ordered_buckets(buckets: dict[str, list]) -> list[tuple[str, list]]:
    # 日付の昇順, UNSCHEDULED は最後
    keys = sorted(k for k in buckets if k != UNSCHEDULED)
    if UNSCHEDULED in buckets:
        keys.append(UNSCHEDULED)
    return [(k, buckets[k]) for k in keys]


def pending_tasks(tasks) -> list:
    return [t for t in tasks if not t.is_done]
