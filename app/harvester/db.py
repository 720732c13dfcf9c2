"""SQLite helpers for the review harvester.

This module defines the database connection helper, schema initialisation,
review upserts and run bookkeeping.
"""
from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from . import config
from .models import Review

DB_PATH: Path = config.DB_PATH


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def get_connection() -> sqlite3.Connection:
    """Return a SQLite connection to the project database.

    The parent directory is created if missing and ``check_same_thread`` is
    disabled so the Flask worker thread can reuse the helper. Callers must
    manage concurrency at a higher layer.
    """

    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def initialize_schema() -> None:
    """Create the tables if they do not yet exist. Safe to call repeatedly."""

    statements: Iterable[str] = (
        """
        CREATE TABLE IF NOT EXISTS owners (
            owner_id        TEXT PRIMARY KEY,
            review_count    INTEGER NOT NULL DEFAULT 0,
            updated_at      TEXT NOT NULL
        );
        """,
        """
        CREATE TABLE IF NOT EXISTS reviews (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id        TEXT NOT NULL,
            identity_key    TEXT NOT NULL,
            author_name     TEXT NOT NULL,
            rating          INTEGER NOT NULL,
            body_text       TEXT NOT NULL DEFAULT '',
            review_ts       TEXT NOT NULL,
            verified        INTEGER NOT NULL DEFAULT 0,
            attachments     TEXT NOT NULL DEFAULT '[]',
            created_at      TEXT NOT NULL,
            updated_at      TEXT NOT NULL,
            UNIQUE(owner_id, identity_key)
        );
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_reviews_owner
            ON reviews(owner_id);
        """,
        """
        CREATE TABLE IF NOT EXISTS runs (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            started_at      TEXT NOT NULL,
            ended_at        TEXT,
            trigger         TEXT NOT NULL,
            owner_id        TEXT NOT NULL,
            source_url      TEXT,
            params_json     TEXT NOT NULL,
            status          TEXT NOT NULL,
            reason          TEXT,
            iterations      INTEGER,
            records         INTEGER,
            truncated       INTEGER,
            persisted       INTEGER,
            error_code      TEXT,
            error_message   TEXT
        );
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_runs_started_at
            ON runs(started_at DESC);
        """,
    )

    conn = get_connection()
    try:
        with conn:
            for statement in statements:
                conn.execute(statement)
    finally:
        conn.close()


def upsert_reviews(owner_id: str, reviews: Sequence[Review]) -> tuple[int, int]:
    """Insert new reviews and refresh existing ones for ``owner_id``.

    Returns ``(inserted, updated)`` and refreshes ``owners.review_count`` to
    the number of stored rows for the owner.
    """

    inserted = 0
    updated = 0
    now = _now_iso()
    conn = get_connection()
    try:
        with conn:
            for review in reviews:
                params = (
                    review.author_name,
                    review.rating,
                    review.body_text,
                    review.timestamp.isoformat(),
                    1 if review.verified else 0,
                    json.dumps(list(review.attachments)),
                    now,
                    owner_id,
                    review.identity_key,
                )
                cursor = conn.execute(
                    """
                    UPDATE reviews
                       SET author_name = ?, rating = ?, body_text = ?, review_ts = ?,
                           verified = ?, attachments = ?, updated_at = ?
                     WHERE owner_id = ? AND identity_key = ?
                    """,
                    params,
                )
                if cursor.rowcount:
                    updated += 1
                    continue
                conn.execute(
                    """
                    INSERT INTO reviews (
                        author_name, rating, body_text, review_ts, verified,
                        attachments, updated_at, owner_id, identity_key, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    params + (now,),
                )
                inserted += 1

            count = conn.execute(
                "SELECT COUNT(*) FROM reviews WHERE owner_id = ?", (owner_id,)
            ).fetchone()[0]
            conn.execute(
                """
                INSERT INTO owners (owner_id, review_count, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(owner_id) DO UPDATE SET
                    review_count = excluded.review_count,
                    updated_at = excluded.updated_at
                """,
                (owner_id, int(count), now),
            )
    finally:
        conn.close()
    return inserted, updated


def get_owner_review_count(owner_id: str) -> Optional[int]:
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT review_count FROM owners WHERE owner_id = ?", (owner_id,)
        ).fetchone()
    finally:
        conn.close()
    return int(row["review_count"]) if row is not None else None


def create_run(
    *,
    trigger: str,
    owner_id: str,
    source_url: Optional[str],
    params: dict[str, Any],
) -> int:
    """Insert a ``runs`` row with status ``running`` and return its id."""

    conn = get_connection()
    try:
        with conn:
            cursor = conn.execute(
                """
                INSERT INTO runs (started_at, trigger, owner_id, source_url, params_json, status)
                VALUES (?, ?, ?, ?, ?, 'running')
                """,
                (_now_iso(), trigger, owner_id, source_url, json.dumps(params, default=str)),
            )
            return int(cursor.lastrowid)
    finally:
        conn.close()


def finish_run(
    run_id: int,
    *,
    status: str,
    reason: Optional[str],
    iterations: int = 0,
    records: int = 0,
    truncated: bool = False,
    persisted: Optional[bool] = None,
    error_code: Optional[str] = None,
    error_message: Optional[str] = None,
) -> None:
    conn = get_connection()
    try:
        with conn:
            conn.execute(
                """
                UPDATE runs
                   SET ended_at = ?, status = ?, reason = ?, iterations = ?, records = ?,
                       truncated = ?, persisted = ?, error_code = ?, error_message = ?
                 WHERE id = ?
                """,
                (
                    _now_iso(),
                    status,
                    reason,
                    iterations,
                    records,
                    1 if truncated else 0,
                    None if persisted is None else (1 if persisted else 0),
                    error_code,
                    error_message,
                    run_id,
                ),
            )
    finally:
        conn.close()


def get_run(run_id: int) -> Optional[dict[str, Any]]:
    conn = get_connection()
    try:
        row = conn.execute("SELECT * FROM runs WHERE id = ?", (run_id,)).fetchone()
    finally:
        conn.close()
    return _run_row_to_dict(row) if row is not None else None


def latest_run_id() -> Optional[int]:
    conn = get_connection()
    try:
        row = conn.execute("SELECT id FROM runs ORDER BY id DESC LIMIT 1").fetchone()
    finally:
        conn.close()
    return int(row["id"]) if row is not None else None


def _run_row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
    data = dict(row)
    try:
        data["params"] = json.loads(data.pop("params_json") or "{}")
    except json.JSONDecodeError:
        data["params"] = {}
    for flag in ("truncated", "persisted"):
        if data.get(flag) is not None:
            data[flag] = bool(data[flag])
    return data


__all__ = [
    "DB_PATH",
    "create_run",
    "finish_run",
    "get_connection",
    "get_owner_review_count",
    "get_run",
    "initialize_schema",
    "latest_run_id",
    "upsert_reviews",
]
