from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Iterable

from opscore.schema import SCHEMA_SQL


def connect(db_path: Path | str) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    cols = [r["name"] for r in rows]
    return column in cols


def ensure_schema(conn: sqlite3.Connection) -> None:
    # Create base schema (for new installs)
    conn.executescript(SCHEMA_SQL)

    # ---- migrations for existing installs ----
    if not _column_exists(conn, "transactions", "deleted_by"):
        conn.execute("ALTER TABLE transactions ADD COLUMN deleted_by TEXT;")

    conn.commit()


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    cur = conn.execute(sql, tuple(params))
    rows = cur.fetchall()
    cur.close()
    return rows


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    cur = conn.execute(sql, tuple(params))
    conn.commit()
    count = cur.rowcount
    cur.close()
    return int(count)


def xm(conn: sqlite3.Connection, sql: str, rows: Iterable[Iterable[Any]]) -> int:
    # All rows or none: the connection context manager rolls back on error.
    with conn:
        cur = conn.executemany(sql, [tuple(r) for r in rows])
        count = cur.rowcount
        cur.close()
    return int(count)
