"""
tests/conftest.py
"""
from __future__ import annotations

import datetime as _dt
import itertools
from pathlib import Path
from typing import Callable, Generator

import pytest
from flask.testing import FlaskClient
from pytest import MonkeyPatch

# The single-file app lives here:
from toughts.app import app, create_user, get_db, init_db, now_iso

CSRF = "test-token"  # shared constant so the token matches the session

_ip_counter = itertools.count(1)


@pytest.fixture(scope="session")
def _tmp_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """One temp file for the whole test session (faster than per-test)."""
    return tmp_path_factory.mktemp("data") / "test.sqlite3"


@pytest.fixture(scope="session", autouse=True)
def _configure_app(_tmp_db_path: Path) -> None:
    """
    Configure the Flask app *once* before the first test is collected.
    """
    app.config.update(TESTING=True, DATABASE=str(_tmp_db_path))
    with app.app_context():
        init_db()


@pytest.fixture(autouse=True, scope="session")
def _fast_clock():
    """
    Patch toughts.app.utc_now for the whole test session so every call
    returns an ever-increasing timestamp. Creation order == sort order.
    """
    from toughts import app as toughts_app  # import here to avoid early import

    counter = itertools.count()
    base = _dt.datetime(2099, 1, 1, tzinfo=_dt.timezone.utc)

    def _fake_now():
        return base + _dt.timedelta(seconds=next(counter))

    mp = MonkeyPatch()
    mp.setattr(toughts_app, "utc_now", _fake_now)

    yield

    mp.undo()


@pytest.fixture(autouse=True)
def _empty_tables() -> None:
    """Every test starts with no users and no toughts."""
    with app.app_context():
        db = get_db()
        db.execute("DELETE FROM tought")
        db.execute("DELETE FROM user")
        db.commit()


@pytest.fixture
def client() -> Generator[FlaskClient, None, None]:
    """
    Test client with a unique REMOTE_ADDR, so the per-IP rate limit on
    /login and /register never bleeds between tests.
    """
    with app.test_client() as c:
        with app.app_context():
            n = next(_ip_counter)
            c.environ_base["REMOTE_ADDR"] = f"10.0.{n // 250}.{n % 250 + 1}"
            yield c


@pytest.fixture
def db():
    """A connection for tests that call the query helpers directly."""
    with app.app_context():
        yield get_db()


# ───────────────────────── factories ──────────────────────────────────
@pytest.fixture
def make_user() -> Callable[..., int]:
    counter = itertools.count(1)

    def _make(name: str | None = None, *, password: str = "secret") -> int:
        n = next(counter)
        with app.app_context():
            return create_user(
                get_db(),
                name=name or f"user{n}",
                email=f"{name or 'user'}{n}@example.com",
                password=password,
            )

    return _make


@pytest.fixture
def make_tought() -> Callable[..., int]:
    def _make(user_id: int, title: str) -> int:
        with app.app_context():
            db = get_db()
            now = now_iso()
            cur = db.execute(
                "INSERT INTO tought (title, user_id, created_at, updated_at)"
                " VALUES (?,?,?,?)",
                (title, user_id, now, now),
            )
            db.commit()
            return cur.lastrowid

    return _make


def login_as(client: FlaskClient, user_id: int) -> None:
    """Skip the form: drop the user straight into the session."""
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["csrf"] = CSRF
