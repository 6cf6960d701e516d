#!/usr/bin/env python3
"""
migrate_db.py – copy every user and tought from toughts.sqlite3.old into a
freshly initialised toughts.sqlite3.new, parents before children so the
foreign keys stay enforced.
"""

import sqlite3
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
PKG = ROOT / "toughts"

OLD_DB = Path(sys.argv[1]) if len(sys.argv) > 1 else PKG / "toughts.sqlite3.old"
NEW_DB = Path(sys.argv[2]) if len(sys.argv) > 2 else PKG / "toughts.sqlite3.new"

if not OLD_DB.exists():
    sys.exit(f"❌  source DB not found: {OLD_DB}")
if NEW_DB.exists():
    sys.exit(f"❌  {NEW_DB} already exists – remove it first")

print("• old →", OLD_DB)
print("• new →", NEW_DB)

# ----------------------------------------------------- 1. build empty target
from toughts import app as toughts_app  # noqa: E402  pulls in init_db()

toughts_app.app.config["DATABASE"] = str(NEW_DB)
with toughts_app.app.app_context():
    toughts_app.init_db()
print("  schema created")

# ----------------------------------------------------- 2. open both DBs
new_db = sqlite3.connect(NEW_DB)
new_db.row_factory = sqlite3.Row
new_db.execute("PRAGMA foreign_keys = ON")

old_db = sqlite3.connect(OLD_DB)
old_db.row_factory = sqlite3.Row

# ----------------------------------------------------- 3. copy in FK-order
TABLES_IN_ORDER = ["user", "tought"]

for tbl in TABLES_IN_ORDER:
    new_cols = {c["name"] for c in new_db.execute(f"PRAGMA table_info({tbl})")}
    try:
        old_cols = [c["name"] for c in old_db.execute(f"PRAGMA table_info({tbl})")]
    except sqlite3.OperationalError:
        continue                        # table absent in old DB – skip

    cols = [c for c in old_cols if c in new_cols]
    if not cols:
        continue
    col_list = ", ".join(cols)
    q_marks = ", ".join("?" * len(cols))
    rows = old_db.execute(f"SELECT {col_list} FROM {tbl}").fetchall()

    if rows:
        new_db.executemany(
            f"INSERT INTO {tbl} ({col_list}) VALUES ({q_marks})",
            [tuple(r) for r in rows],
        )
    print(f"  {tbl:<10} {len(rows):>6} rows")

new_db.commit()
print("\n✅  migration finished – new DB at", NEW_DB)
