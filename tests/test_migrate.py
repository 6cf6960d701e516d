"""
tests/test_migrate.py
"""
from __future__ import annotations

import os
import sqlite3
import subprocess
import sys
from pathlib import Path

from toughts.app import app, create_user, get_db, init_db

ROOT = Path(__file__).resolve().parents[1]


def _seed_old_db(path: Path, monkeypatch) -> None:
    monkeypatch.setitem(app.config, "DATABASE", str(path))
    with app.app_context():
        init_db()
        db = get_db()
        uid = create_user(db, name="Ada", email="ada@example.com", password="pw")
        db.executemany(
            "INSERT INTO tought (title, user_id, created_at, updated_at) "
            "VALUES (?,?,?,?)",
            [
                ("first", uid, "2024-01-01T00:00:00+00:00", "2024-01-01T00:00:00+00:00"),
                ("second", uid, "2024-01-02T00:00:00+00:00", "2024-01-03T00:00:00+00:00"),
            ],
        )
        db.commit()


def _run(old: Path, new: Path, tmp_path: Path) -> subprocess.CompletedProcess:
    env = {
        **os.environ,
        "TOUGHTS_SECRET_KEY": "migrate-test",
        "TOUGHTS_DB": str(tmp_path / "unused.sqlite3"),
        "PYTHONIOENCODING": "utf-8",
    }
    return subprocess.run(
        [sys.executable, str(ROOT / "migrate_db.py"), str(old), str(new)],
        cwd=ROOT,
        env=env,
        capture_output=True,
        encoding="utf-8",
    )


def test_migrate_copies_users_and_toughts(tmp_path, monkeypatch):
    old = tmp_path / "old.sqlite3"
    new = tmp_path / "new.sqlite3"
    _seed_old_db(old, monkeypatch)

    result = _run(old, new, tmp_path)
    assert result.returncode == 0, result.stderr
    assert "migration finished" in result.stdout

    con = sqlite3.connect(new)
    try:
        users = con.execute("SELECT name, email FROM user").fetchall()
        toughts = con.execute(
            "SELECT title, created_at, updated_at FROM tought ORDER BY id"
        ).fetchall()
    finally:
        con.close()

    assert users == [("Ada", "ada@example.com")]
    assert toughts == [
        ("first", "2024-01-01T00:00:00+00:00", "2024-01-01T00:00:00+00:00"),
        ("second", "2024-01-02T00:00:00+00:00", "2024-01-03T00:00:00+00:00"),
    ]


def test_migrate_refuses_to_overwrite(tmp_path, monkeypatch):
    old = tmp_path / "old.sqlite3"
    new = tmp_path / "new.sqlite3"
    _seed_old_db(old, monkeypatch)
    new.write_bytes(b"")

    result = _run(old, new, tmp_path)
    assert result.returncode != 0
    assert "already exists" in result.stderr


def test_migrate_needs_a_source(tmp_path):
    result = _run(tmp_path / "missing.sqlite3", tmp_path / "new.sqlite3", tmp_path)
    assert result.returncode != 0
    assert "source DB not found" in result.stderr
