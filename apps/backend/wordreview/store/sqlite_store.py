from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from functools import partial
from pathlib import Path

import anyio

from ..errors import StoreUnavailableError
from ..models import AttemptScore, WeakItem
from ..ports import PerformanceHistoryStore, WeakItemStore
from .common import (
    attempt_from_document,
    attempt_to_document,
    weak_item_from_document,
    weak_item_to_document,
)

_WEAK_ITEM_COLUMNS = (
    "id, user_id, item_id, success_rate, attempt_count, last_attempt, next_review, "
    "review_interval, ease_factor, created_at, updated_at"
)


class SQLiteSRSStore(PerformanceHistoryStore, WeakItemStore):
    """SQLite-backed attempt log and weak-item store.

    - attempt_scores は追記のみ（更新・削除しない）
    - weak_items は (user_id, item_id) に UNIQUE 制約を持ち upsert で更新する
    - 同一ペアへの同時更新は last-write-wins（楽観ロックは持たない）
    - 接続は呼び出しごとに開閉し、ブロッキング I/O はワーカースレッドで実行する
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._ensure_dirs()
        self._init_db()

    # --- low-level helpers ---
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10.0, isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        with conn:  # autocommit on pragma
            conn.execute("pragma journal_mode=WAL;")
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.OperationalError as exc:
            raise StoreUnavailableError("sqlite", str(exc)) from exc
        try:
            yield conn
        except sqlite3.OperationalError as exc:
            # database is locked / disk I/O error など、再試行で回復しうる障害
            raise StoreUnavailableError("sqlite", str(exc)) from exc
        finally:
            conn.close()

    def _ensure_dirs(self) -> None:
        p = Path(self.db_path)
        if p.parent and not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self) -> None:
        with self._connection() as conn:
            with conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS attempt_scores (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        item_id TEXT NOT NULL,
                        score REAL NOT NULL,
                        recognized_text TEXT NOT NULL DEFAULT '',
                        timestamp TEXT NOT NULL
                    );
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_attempts_user_item_ts ON attempt_scores(user_id, item_id, timestamp);"
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS weak_items (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        item_id TEXT NOT NULL,
                        success_rate REAL NOT NULL,
                        attempt_count INTEGER NOT NULL DEFAULT 0,
                        last_attempt TEXT NOT NULL,
                        next_review TEXT NOT NULL,
                        review_interval INTEGER NOT NULL DEFAULT 1,
                        ease_factor REAL NOT NULL DEFAULT 2.5,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        UNIQUE(user_id, item_id)
                    );
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_weak_items_user_next ON weak_items(user_id, next_review);"
                )

    # --- sync implementations ---
    def _record(self, attempt: AttemptScore) -> AttemptScore:
        doc = attempt_to_document(attempt)
        with self._connection() as conn:
            with conn:
                conn.execute(
                    """
                    INSERT INTO attempt_scores(id, user_id, item_id, score, recognized_text, timestamp)
                    VALUES (:id, :user_id, :item_id, :score, :recognized_text, :timestamp);
                    """,
                    doc,
                )
        return attempt

    def _get_recent(self, user_id: str, item_id: str, limit: int) -> list[AttemptScore]:
        if limit <= 0:
            return []
        with self._connection() as conn:
            cur = conn.execute(
                """
                SELECT id, user_id, item_id, score, recognized_text, timestamp
                FROM attempt_scores
                WHERE user_id = ? AND item_id = ?
                ORDER BY timestamp DESC, rowid DESC
                LIMIT ?;
                """,
                (user_id, item_id, int(limit)),
            )
            rows = cur.fetchall()
        return [attempt_from_document(dict(row)) for row in rows]

    def _get(self, user_id: str, item_id: str) -> WeakItem | None:
        with self._connection() as conn:
            cur = conn.execute(
                f"SELECT {_WEAK_ITEM_COLUMNS} FROM weak_items WHERE user_id = ? AND item_id = ?;",
                (user_id, item_id),
            )
            row = cur.fetchone()
        if row is None:
            return None
        return weak_item_from_document(dict(row))

    def _upsert(self, item: WeakItem) -> WeakItem:
        doc = weak_item_to_document(item)
        with self._connection() as conn:
            with conn:
                conn.execute(
                    """
                    INSERT INTO weak_items (
                        id, user_id, item_id, success_rate, attempt_count, last_attempt,
                        next_review, review_interval, ease_factor, created_at, updated_at
                    ) VALUES (
                        :id, :user_id, :item_id, :success_rate, :attempt_count, :last_attempt,
                        :next_review, :review_interval, :ease_factor, :created_at, :updated_at
                    )
                    ON CONFLICT(user_id, item_id) DO UPDATE SET
                        success_rate = excluded.success_rate,
                        attempt_count = excluded.attempt_count,
                        last_attempt = excluded.last_attempt,
                        next_review = excluded.next_review,
                        review_interval = excluded.review_interval,
                        ease_factor = excluded.ease_factor,
                        updated_at = excluded.updated_at;
                    """,
                    doc,
                )
        stored = self._get(item.user_id, item.item_id)
        if stored is None:  # pragma: no cover
            raise RuntimeError("failed to persist weak item")
        return stored

    def _delete(self, user_id: str, item_id: str) -> bool:
        with self._connection() as conn:
            with conn:
                cur = conn.execute(
                    "DELETE FROM weak_items WHERE user_id = ? AND item_id = ?;",
                    (user_id, item_id),
                )
                return cur.rowcount > 0

    def _list(self, user_id: str, as_of: date | None) -> list[WeakItem]:
        query = f"SELECT {_WEAK_ITEM_COLUMNS} FROM weak_items WHERE user_id = ?"
        params: list[object] = [user_id]
        if as_of is not None:
            query += " AND next_review <= ?"
            params.append(as_of.isoformat())
        query += " ORDER BY next_review ASC, created_at ASC, id ASC;"
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [weak_item_from_document(dict(row)) for row in rows]

    # --- public API (async) ---
    async def record(self, attempt: AttemptScore) -> AttemptScore:
        return await anyio.to_thread.run_sync(partial(self._record, attempt))

    async def get_recent(self, user_id: str, item_id: str, limit: int) -> list[AttemptScore]:
        return await anyio.to_thread.run_sync(partial(self._get_recent, user_id, item_id, limit))

    async def get(self, user_id: str, item_id: str) -> WeakItem | None:
        return await anyio.to_thread.run_sync(partial(self._get, user_id, item_id))

    async def upsert(self, item: WeakItem) -> WeakItem:
        return await anyio.to_thread.run_sync(partial(self._upsert, item))

    async def delete(self, user_id: str, item_id: str) -> bool:
        return await anyio.to_thread.run_sync(partial(self._delete, user_id, item_id))

    async def list_due(self, user_id: str, as_of: date) -> list[WeakItem]:
        return await anyio.to_thread.run_sync(partial(self._list, user_id, as_of))

    async def list_for_user(self, user_id: str) -> list[WeakItem]:
        return await anyio.to_thread.run_sync(partial(self._list, user_id, None))
