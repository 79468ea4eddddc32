"""
Pytest configuration and shared fixtures.
"""

import os

# calio.config は import 時に環境変数を読む
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["CALIO_WEEK_START"] = "monday"
os.environ["CALIO_TIMEZONE"] = "Asia/Tokyo"

import pytest

from calio import store
from calio.app import app as flask_app
from calio.models import User, db

EMAIL = "alice@example.com"
PASSWORD = "correct horse"


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    with flask_app.app_context():
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Application context for calling store functions directly."""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(app, email, password=PASSWORD) -> int:
    with app.app_context():
        user = User(email=email)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id


@pytest.fixture
def user_id(app):
    return make_user(app, EMAIL)


@pytest.fixture
def other_user_id(app):
    return make_user(app, "bob@example.com")


@pytest.fixture
def category_id(app, user_id):
    with app.app_context():
        return store.create_category(user_id, "日記", "#E9D5FF", "#111827").id


@pytest.fixture
def auth_client(client, user_id):
    response = client.post("/login", data={"email": EMAIL, "password": PASSWORD})
    assert response.status_code == 302
    return client
