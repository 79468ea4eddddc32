import logging
from datetime import date, datetime, timedelta
from urllib.parse import urlsplit
from zoneinfo import ZoneInfo

from flask import Flask, render_template, redirect, url_for, request, flash, abort, jsonify
from flask_login import (
    LoginManager, login_user,
    logout_user, login_required, current_user
)
from flask_migrate import Migrate

from . import store
from .buckets import UNSCHEDULED, bucket_by_date, ordered_buckets, pending_tasks
from .config import Config
from .dates import (
    WeekStart, add_months, build_month_grid, grid_range,
    month_title, normalize_month, weekday_headers, ymd,
)
from .lunar import lunar_label, lunar_month_range, lunar_short_label
from .markup import render_markdown
from .models import EVENT_TYPES, User, db

app = Flask(__name__)
app.config.from_object(Config)

logging.basicConfig(
    level=app.config["CALIO_LOG_LEVEL"],
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
app.logger.setLevel(app.config["CALIO_LOG_LEVEL"])

db.init_app(app)
migrate = Migrate()
migrate.init_app(app, db)
login_manager = LoginManager(app)
login_manager.login_view = "login"  # ログインしていないときのリダイレクト先 (?next=... 付き)
login_manager.login_message = "ログインしてください. "

TZ = ZoneInfo(app.config["CALIO_TIMEZONE"])
WEEK_START = WeekStart.parse(app.config["CALIO_WEEK_START"])
RANGE_DAYS = app.config["CALIO_RANGE_DAYS"]

# セル内のチップ
MAX_CHIPS = 3
DEFAULT_CHIP = {"bg": "#1a73e8", "fg": "#e8eaed"}
TASK_CHIP = {"bg": "#a142f4", "fg": "#e8eaed"}

app.jinja_env.globals.update(
    lunar_label=lunar_label,
    ymd=ymd,
    UNSCHEDULED=UNSCHEDULED,
)


def today() -> date:
    return datetime.now(TZ).date()


def safe_next(target: str | None) -> str | None:
    """
    ログイン後の戻り先. 同じホスト内の相対パスだけ許可
    """
    if not target:
        return None
    parts = urlsplit(target)
    if parts.scheme or parts.netloc or not target.startswith("/") or target.startswith("//"):
        return None
    return target


def parse_date_arg(name: str, default: date) -> date:
    value = request.args.get(name)
    if not value:
        return default
    try:
        return date.fromisoformat(value)
    except ValueError:
        abort(404)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@app.cli.command("init-db")
def init_db():
    """テーブルをまとめて作る (マイグレーションを使わない手元用)"""
    db.create_all()
    print("initialized")


@app.route("/healthz")
def healthz():
    # 設定の有無だけ返す. 値そのものは出さない
    return jsonify({
        "ok": True,
        "secret_key": "SET" if app.config.get("SECRET_KEY") else "EMPTY",
        "timezone": app.config["CALIO_TIMEZONE"],
        "week_start": WEEK_START.name.lower(),
    })


@app.route("/")
@login_required
def index():
    return redirect(url_for("calendar_view"))


def day_chips(entries, events, tasks) -> tuple[list[dict], bool]:
    """
    セルに出すチップ. イベント 1, 未完了タスク 1, エントリ 2 の順で最大 3 つ
    """
    chips = []
    for ev in events[:1]:
        chips.append({"label": ev.title or "約束/記念日", **DEFAULT_CHIP})
    for t in pending_tasks(tasks)[:1]:
        chips.append({"label": t.title or "タスク", **TASK_CHIP})
    for e in entries[:2]:
        cat = e.category
        chips.append({
            "label": e.title or (cat.name if cat else "記録"),
            "bg": cat.color_bg if cat else DEFAULT_CHIP["bg"],
            "fg": cat.color_text if cat else DEFAULT_CHIP["fg"],
        })
    more = len(entries) + len(events) + len(tasks) > MAX_CHIPS
    return chips[:MAX_CHIPS], more


@app.route("/calendar")
@login_required
def calendar_view():
    year = request.args.get("year", type=int)
    month = request.args.get("month", type=int)  # 1 始まり

    if year is None or month is None:
        t = today()
        year, month = t.year, t.month

    # month=13 などは翌年へ繰り上げ
    year, month0 = normalize_month(year, month - 1)

    # date で表せない年 (0 以下, 10000 以上) やその境目
    try:
        cells = build_month_grid(year, month0, WEEK_START)
    except (ValueError, OverflowError):
        abort(404)
    start, end = grid_range(cells)

    entries_by_date = bucket_by_date(store.fetch_entries_by_range(current_user.id, start, end), "entry_date")
    events_by_date = bucket_by_date(store.fetch_events_by_range(current_user.id, start, end), "solar_date")
    tasks_by_date = bucket_by_date(
        store.fetch_tasks_by_range(current_user.id, start, end, include_unscheduled=False),
        "due_date",
    )

    days = []
    for cell in cells:
        entries = entries_by_date.get(cell.key, [])
        events = events_by_date.get(cell.key, [])
        tasks = tasks_by_date.get(cell.key, [])
        chips, more = day_chips(entries, events, tasks)
        days.append({
            "cell": cell,
            "lunar": lunar_short_label(cell.key),
            "chips": chips,
            "more": more,
            "has_events": bool(events),
            "has_pending_tasks": bool(pending_tasks(tasks)),
        })
    weeks = [days[i:i + 7] for i in range(0, len(days), 7)]

    prev_year, prev_month0 = add_months(year, month0, -1)
    next_year, next_month0 = add_months(year, month0, 1)

    return render_template(
        "calendar.html",
        title=month_title(year, month0),
        lunar_range=lunar_month_range(year, month0),
        headers=weekday_headers(WEEK_START),
        weeks=weeks,
        today_key=ymd(today()),
        prev={"year": prev_year, "month": prev_month0 + 1},
        next={"year": next_year, "month": next_month0 + 1},
    )


# 日ごとの一覧

@app.route("/day")
@login_required
def day_view():
    target_date = parse_date_arg("date", today())

    entries = store.fetch_entries_by_range(current_user.id, target_date, target_date)
    events = store.fetch_events_by_range(current_user.id, target_date, target_date)
    tasks = store.fetch_tasks_by_range(current_user.id, target_date, target_date, include_unscheduled=False)

    return render_template(
        "day.html",
        target_date=target_date,
        date_key=ymd(target_date),
        entries=entries,
        bodies={e.id: render_markdown(e.content) for e in entries},
        events=events,
        tasks=tasks,
    )


# ログイン

@app.route("/login", methods=["GET", "POST"])
def login():
    next_path = safe_next(request.values.get("next")) or url_for("calendar_view")

    if request.method == "POST":
        email = request.form["email"].strip().lower()
        password = request.form["password"]

        user = User.query.filter_by(email=email).first()
        if user and user.check_password(password):
            login_user(user)
            app.logger.info("user %s logged in", user.id)
            return redirect(next_path)
        app.logger.info("failed login for %s", email)
        flash("メールアドレスまたはパスワードが違います. ")
    return render_template("login.html", next_path=next_path)


# 登録

@app.route("/register", methods=["GET", "POST"])
def register():
    if request.method == "POST":
        email = request.form["email"].strip().lower()
        password = request.form["password"]

        if not email or not password:
            flash("メールアドレスとパスワードを入力してください. ")
            return redirect(url_for("register"))

        if User.query.filter_by(email=email).first():
            flash("そのメールアドレスはすでに使われています. ")
            return redirect(url_for("register"))

        user = User(email=email)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        app.logger.info("user %s registered", user.id)
        flash("登録完了しました. ログインしてください. ")
        return redirect(url_for("login"))
    return render_template("register.html")


@app.route("/logout")
@login_required
def logout():
    logout_user()
    return redirect(url_for("login"))


# エントリ

@app.route("/entries")
@login_required
def entries_list():
    end = parse_date_arg("end", today())
    start = parse_date_arg("start", end - timedelta(days=RANGE_DAYS))
    if start > end:
        abort(400)

    entries = store.fetch_entries_by_range(current_user.id, start, end)
    return render_template(
        "entries.html",
        start=start,
        end=end,
        groups=ordered_buckets(bucket_by_date(entries, "entry_date")),
    )


@app.route("/entries/new", methods=["GET", "POST"])
@login_required
def new_entry():
    categories = store.fetch_categories(current_user.id)
    if request.method == "POST":
        try:
            entry = store.create_entry(
                current_user.id,
                entry_date=request.form.get("entry_date"),
                category_id=request.form.get("category_id"),
                title=request.form.get("title"),
                content=request.form.get("content"),
            )
        except store.ValidationError as e:
            flash(str(e))
            return render_template("entry_form.html", entry=None, form=request.form,
                                   categories=categories), 400
        return redirect(url_for("day_view", date=ymd(entry.entry_date)))

    form = {"entry_date": request.args.get("date") or ymd(today())}
    return render_template("entry_form.html", entry=None, form=form, categories=categories)


@app.route("/entries/<int:entry_id>/edit", methods=["GET", "POST"])
@login_required
def edit_entry(entry_id: int):
    entry = store.fetch_entry(current_user.id, entry_id)
    categories = store.fetch_categories(current_user.id)

    if request.method == "POST":
        try:
            store.update_entry(
                current_user.id,
                entry_id,
                category_id=request.form.get("category_id"),
                title=request.form.get("title"),
                content=request.form.get("content"),
                entry_date=request.form.get("entry_date"),
            )
        except store.ValidationError as e:
            flash(str(e))
            return render_template("entry_form.html", entry=entry, form=request.form,
                                   categories=categories), 400
        return redirect(url_for("day_view", date=ymd(entry.entry_date)))

    form = {
        "entry_date": ymd(entry.entry_date),
        "category_id": str(entry.category_id),
        "title": entry.title or "",
        "content": entry.content,
    }
    return render_template("entry_form.html", entry=entry, form=form, categories=categories)


# DELETE. form は GET / POST しかサポートしないので POST で代用
@app.route("/entries/<int:entry_id>/delete", methods=["POST"])
@login_required
def delete_entry(entry_id: int):
    entry = store.fetch_entry(current_user.id, entry_id)
    store.delete_entry(current_user.id, entry_id)
    flash("削除が完了しました. ")
    return redirect(url_for("day_view", date=ymd(entry.entry_date)))


# Markdown のプレビュー
@app.route("/markdown_preview", methods=["POST"])
@login_required
def markdown_preview():
    data = request.get_json(silent=True) or {}
    text = data.get("text", "") or ""
    return jsonify({"html": render_markdown(text)})


# イベント

def event_form_fields() -> dict:
    return {
        "event_type": request.form.get("event_type", "appointment"),
        "title": request.form.get("title"),
        "content": request.form.get("content"),
        "category_id": request.form.get("category_id"),
        "solar_date": request.form.get("solar_date"),
        "start_time": request.form.get("start_time"),
        "is_all_day": "is_all_day" in request.form,
        "is_recurring_yearly": "is_recurring_yearly" in request.form,
    }


@app.route("/events")
@login_required
def events_list():
    start = parse_date_arg("start", today())
    end = parse_date_arg("end", start + timedelta(days=RANGE_DAYS))
    if start > end:
        abort(400)

    events = store.fetch_events_by_range(current_user.id, start, end)
    return render_template(
        "events.html",
        start=start,
        end=end,
        groups=ordered_buckets(bucket_by_date(events, "solar_date")),
    )


@app.route("/events/new", methods=["GET", "POST"])
@login_required
def new_event():
    categories = store.fetch_categories(current_user.id)
    if request.method == "POST":
        try:
            event = store.create_event(current_user.id, **event_form_fields())
        except store.ValidationError as e:
            flash(str(e))
            return render_template("event_form.html", event=None, form=request.form,
                                   categories=categories, event_types=EVENT_TYPES), 400
        return redirect(url_for("day_view", date=ymd(event.solar_date)))

    form = {"solar_date": request.args.get("date") or ymd(today()), "is_all_day": "on"}
    return render_template("event_form.html", event=None, form=form,
                           categories=categories, event_types=EVENT_TYPES)


@app.route("/events/<int:event_id>/edit", methods=["GET", "POST"])
@login_required
def edit_event(event_id: int):
    event = store.fetch_event(current_user.id, event_id)
    categories = store.fetch_categories(current_user.id)

    if request.method == "POST":
        try:
            event = store.update_event(current_user.id, event_id, **event_form_fields())
        except store.ValidationError as e:
            flash(str(e))
            return render_template("event_form.html", event=event, form=request.form,
                                   categories=categories, event_types=EVENT_TYPES), 400
        return redirect(url_for("day_view", date=ymd(event.solar_date)))

    form = {
        "event_type": event.event_type,
        "title": event.title,
        "content": event.content or "",
        "category_id": str(event.category_id or ""),
        "solar_date": ymd(event.solar_date),
        "start_time": event.start_time.strftime("%H:%M") if event.start_time else "",
    }
    # チェックボックスは「キーがあるか」で判定する
    if event.is_all_day:
        form["is_all_day"] = "on"
    if event.is_recurring_yearly:
        form["is_recurring_yearly"] = "on"
    return render_template("event_form.html", event=event, form=form,
                           categories=categories, event_types=EVENT_TYPES)


@app.route("/events/<int:event_id>/delete", methods=["POST"])
@login_required
def delete_event(event_id: int):
    event = store.fetch_event(current_user.id, event_id)
    store.delete_event(current_user.id, event_id)
    flash("削除が完了しました. ")
    return redirect(url_for("day_view", date=ymd(event.solar_date)))


# タスク

@app.route("/tasks")
@login_required
def tasks_list():
    start = parse_date_arg("start", today())
    end = parse_date_arg("end", start + timedelta(days=RANGE_DAYS))
    if start > end:
        abort(400)

    tasks = store.fetch_tasks_by_range(current_user.id, start, end)
    return render_template(
        "tasks.html",
        start=start,
        end=end,
        groups=ordered_buckets(bucket_by_date(tasks, "due_date")),
    )


@app.route("/tasks/new", methods=["GET", "POST"])
@login_required
def new_task():
    if request.method == "POST":
        try:
            store.create_task(
                current_user.id,
                title=request.form.get("title"),
                notes=request.form.get("notes"),
                due_date=request.form.get("due_date"),
            )
        except store.ValidationError as e:
            flash(str(e))
            return render_template("task_form.html", task=None, form=request.form), 400
        return redirect(url_for("tasks_list"))

    form = {"due_date": request.args.get("date", ymd(today()))}
    return render_template("task_form.html", task=None, form=form)


@app.route("/tasks/<int:task_id>/edit", methods=["GET", "POST"])
@login_required
def edit_task(task_id: int):
    task = store.fetch_task(current_user.id, task_id)

    if request.method == "POST":
        try:
            store.update_task(
                current_user.id,
                task_id,
                title=request.form.get("title"),
                notes=request.form.get("notes"),
                due_date=request.form.get("due_date"),
            )
        except store.ValidationError as e:
            flash(str(e))
            return render_template("task_form.html", task=task, form=request.form), 400
        return redirect(url_for("tasks_list"))

    form = {
        "title": task.title,
        "notes": task.notes or "",
        "due_date": ymd(task.due_date) if task.due_date else "",
    }
    return render_template("task_form.html", task=task, form=form)


@app.route("/tasks/<int:task_id>/toggle", methods=["POST"])
@login_required
def toggle_task(task_id: int):
    task = store.fetch_task(current_user.id, task_id)
    store.update_task(current_user.id, task_id, is_done=not task.is_done)
    return redirect(safe_next(request.form.get("next")) or url_for("tasks_list"))


@app.route("/tasks/<int:task_id>/delete", methods=["POST"])
@login_required
def delete_task(task_id: int):
    store.delete_task(current_user.id, task_id)
    flash("削除が完了しました. ")
    return redirect(url_for("tasks_list"))


# カテゴリ

@app.route("/categories", methods=["GET", "POST"])
@login_required
def categories_view():
    if request.method == "POST":
        try:
            store.create_category(
                current_user.id,
                name=request.form.get("name"),
                color_bg=request.form.get("color_bg", "#E9D5FF"),
                color_text=request.form.get("color_text", "#111827"),
            )
        except store.ValidationError as e:
            flash(str(e))
        return redirect(url_for("categories_view"))

    return render_template("categories.html", categories=store.fetch_categories(current_user.id))


@app.route("/categories/<int:category_id>/edit", methods=["POST"])
@login_required
def edit_category(category_id: int):
    sort_order = request.form.get("sort_order", type=int)
    try:
        store.update_category(
            current_user.id,
            category_id,
            name=request.form.get("name"),
            color_bg=request.form.get("color_bg"),
            color_text=request.form.get("color_text"),
            sort_order=sort_order,
        )
    except store.ValidationError as e:
        flash(str(e))
    return redirect(url_for("categories_view"))


@app.route("/categories/<int:category_id>/deactivate", methods=["POST"])
@login_required
def deactivate_category(category_id: int):
    store.deactivate_category(current_user.id, category_id)
    flash("カテゴリを削除しました. ")
    return redirect(url_for("categories_view"))


if __name__ == "__main__":
    app.run(debug=True)
