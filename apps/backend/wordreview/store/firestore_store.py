from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date
from functools import partial
from typing import TypeVar

import anyio
from google.api_core import exceptions as gexc
from google.cloud import firestore

from ..errors import StoreUnavailableError
from ..id_factory import weak_item_id
from ..logging import logger
from ..models import AttemptScore, WeakItem
from ..ports import PerformanceHistoryStore, WeakItemStore
from .common import (
    attempt_from_document,
    attempt_to_document,
    weak_item_from_document,
    weak_item_to_document,
)

T = TypeVar("T")

# 一時的な障害（接続不可・タイムアウト）のみ StoreUnavailable に変換し、
# 権限エラーや不正引数などはそのまま伝播させる。
_UNAVAILABLE_ERRORS = (
    gexc.ServiceUnavailable,
    gexc.DeadlineExceeded,
    gexc.RetryError,
)


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except _UNAVAILABLE_ERRORS as exc:
        logger.warning("firestore_unavailable", operation=operation, error=repr(exc))
        raise StoreUnavailableError("firestore", f"{operation}: {exc}") from exc


class FirestoreSRSStore(PerformanceHistoryStore, WeakItemStore):
    """Firestore 上で成績履歴と弱点アイテムを管理する。

    - attempt_scores: 試行ごとに 1 ドキュメント（追記のみ）
    - weak_items: (user_id, item_id) から導出した決定的な ID のドキュメント
    Firestore クライアントは同期 API のため、呼び出しはワーカースレッドで行う。
    list_due / get_recent は複合インデックス（user_id + next_review、
    user_id + item_id + timestamp）を前提とする。
    """

    def __init__(self, client: firestore.Client):
        self._client = client
        self._attempts = client.collection("attempt_scores")
        self._weak_items = client.collection("weak_items")

    async def _run(self, operation: str, func: Callable[[], T]) -> T:
        def _call() -> T:
            with _translate_errors(operation):
                return func()

        return await anyio.to_thread.run_sync(_call)

    # --- sync implementations ---
    def _record(self, attempt: AttemptScore) -> AttemptScore:
        self._attempts.document(attempt.id).set(attempt_to_document(attempt))
        return attempt

    def _get_recent(self, user_id: str, item_id: str, limit: int) -> list[AttemptScore]:
        if limit <= 0:
            return []
        query = (
            self._attempts.where("user_id", "==", user_id)
            .where("item_id", "==", item_id)
            .order_by("timestamp", direction=firestore.Query.DESCENDING)
            .limit(int(limit))
        )
        return [attempt_from_document(snapshot.to_dict() or {}) for snapshot in query.stream()]

    def _get(self, user_id: str, item_id: str) -> WeakItem | None:
        snapshot = self._weak_items.document(weak_item_id(user_id, item_id)).get()
        if not snapshot.exists:
            return None
        return weak_item_from_document(snapshot.to_dict() or {})

    def _upsert(self, item: WeakItem) -> WeakItem:
        doc_id = weak_item_id(item.user_id, item.item_id)
        payload = weak_item_to_document(item)
        payload["id"] = doc_id
        self._weak_items.document(doc_id).set(payload)
        return weak_item_from_document(payload)

    def _delete(self, user_id: str, item_id: str) -> bool:
        doc_ref = self._weak_items.document(weak_item_id(user_id, item_id))
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()
        return True

    def _list(self, user_id: str, as_of: date | None) -> list[WeakItem]:
        query = self._weak_items.where("user_id", "==", user_id)
        if as_of is not None:
            query = query.where("next_review", "<=", as_of.isoformat())
        query = query.order_by("next_review")
        return [weak_item_from_document(snapshot.to_dict() or {}) for snapshot in query.stream()]

    # --- public API (async) ---
    async def record(self, attempt: AttemptScore) -> AttemptScore:
        return await self._run("record", partial(self._record, attempt))

    async def get_recent(self, user_id: str, item_id: str, limit: int) -> list[AttemptScore]:
        return await self._run("get_recent", partial(self._get_recent, user_id, item_id, limit))

    async def get(self, user_id: str, item_id: str) -> WeakItem | None:
        return await self._run("get", partial(self._get, user_id, item_id))

    async def upsert(self, item: WeakItem) -> WeakItem:
        return await self._run("upsert", partial(self._upsert, item))

    async def delete(self, user_id: str, item_id: str) -> bool:
        return await self._run("delete", partial(self._delete, user_id, item_id))

    async def list_due(self, user_id: str, as_of: date) -> list[WeakItem]:
        return await self._run("list_due", partial(self._list, user_id, as_of))

    async def list_for_user(self, user_id: str) -> list[WeakItem]:
        return await self._run("list_for_user", partial(self._list, user_id, None))
