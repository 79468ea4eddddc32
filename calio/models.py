from datetime import datetime, timezone

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


# UTC の現在時刻を返す
def utcnow():
    return datetime.now(timezone.utc)


class TimestampMixin:
    # timezone-aware, デフォルトは UTC
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


class User(UserMixin, db.Model):
    # UserMixin で Flask-Login に必要な属性を読み込み
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)


class Category(TimestampMixin, db.Model):
    __tablename__ = "entry_category"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    name = db.Column(db.String(80), nullable=False)
    color_bg = db.Column(db.String(16), nullable=False, default="#E9D5FF")
    color_text = db.Column(db.String(16), nullable=False, default="#111827")
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    # 削除は無効化のみ
    is_active = db.Column(db.Boolean, nullable=False, default=True)


class Entry(TimestampMixin, db.Model):
    __tablename__ = "daily_entry"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    entry_date = db.Column(db.Date, nullable=False, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    category_id = db.Column(db.Integer, db.ForeignKey("entry_category.id"), nullable=False)
    title = db.Column(db.String(200))
    content = db.Column(db.Text, nullable=False)
    deleted_at = db.Column(db.DateTime(timezone=True))

    category = db.relationship("Category", lazy="joined")


EVENT_TYPES = ("appointment", "anniversary")
CALENDAR_KINDS = ("solar", "lunar_kr")


class Event(TimestampMixin, db.Model):
    __tablename__ = "calendar_event"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    event_type = db.Column(db.String(16), nullable=False, default="appointment")
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text)
    category_id = db.Column(db.Integer, db.ForeignKey("entry_category.id"))
    calendar_kind = db.Column(db.String(16), nullable=False, default="solar")
    is_recurring_yearly = db.Column(db.Boolean, nullable=False, default=False)
    solar_date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time)
    is_all_day = db.Column(db.Boolean, nullable=False, default=True)
    deleted_at = db.Column(db.DateTime(timezone=True))

    category = db.relationship("Category", lazy="joined")


class Task(TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    notes = db.Column(db.Text)
    # None は期限なし
    due_date = db.Column(db.Date, index=True)
    is_done = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime(timezone=True))
