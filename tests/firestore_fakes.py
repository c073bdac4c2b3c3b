"""Firestore をテストで再現するための簡易フェイク実装。

FirestoreSRSStore が使う範囲（document の get/set/delete と
where/order_by/limit/stream のクエリ）だけを google.cloud.firestore と同じ
呼び出し形で提供する。
"""

from __future__ import annotations

import operator
from dataclasses import dataclass, field
from typing import Any, Callable

from google.cloud import firestore

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


@dataclass
class FakeSnapshot:
    id: str
    _payload: dict[str, Any] | None

    @property
    def exists(self) -> bool:
        return self._payload is not None

    def to_dict(self) -> dict[str, Any] | None:
        return None if self._payload is None else dict(self._payload)


class FakeDocument:
    def __init__(self, client: "FakeFirestoreClient", collection: str, doc_id: str) -> None:
        self._client = client
        self._collection = collection
        self.id = doc_id

    def _bucket(self) -> dict[str, dict[str, Any]]:
        self._client.check_available()
        return self._client._data.setdefault(self._collection, {})

    def get(self) -> FakeSnapshot:
        payload = self._bucket().get(self.id)
        return FakeSnapshot(self.id, None if payload is None else dict(payload))

    def set(self, data: dict[str, Any], merge: bool = False) -> None:
        bucket = self._bucket()
        if merge and self.id in bucket:
            bucket[self.id].update(data)
        else:
            bucket[self.id] = dict(data)

    def delete(self) -> None:
        self._bucket().pop(self.id, None)


@dataclass(frozen=True)
class FakeQuery:
    """イミュータブルなクエリ。where/order_by/limit は新しいクエリを返す。"""

    client: "FakeFirestoreClient"
    collection: str
    filters: tuple[tuple[str, str, Any], ...] = ()
    orderings: tuple[tuple[str, bool], ...] = ()
    max_results: int | None = None

    def where(self, field_path: str, op_string: str, value: Any) -> "FakeQuery":
        if op_string not in _OPERATORS:
            raise NotImplementedError(f"unsupported operator: {op_string}")
        return FakeQuery(
            self.client,
            self.collection,
            self.filters + ((field_path, op_string, value),),
            self.orderings,
            self.max_results,
        )

    def order_by(self, field_path: str, direction: str = firestore.Query.ASCENDING) -> "FakeQuery":
        descending = direction == firestore.Query.DESCENDING
        return FakeQuery(
            self.client,
            self.collection,
            self.filters,
            self.orderings + ((field_path, descending),),
            self.max_results,
        )

    def limit(self, count: int) -> "FakeQuery":
        return FakeQuery(self.client, self.collection, self.filters, self.orderings, max(0, int(count)))

    def _matches(self, payload: dict[str, Any]) -> bool:
        for field_path, op_string, expected in self.filters:
            actual = payload.get(field_path)
            if actual is None and op_string != "==":
                return False
            if not _OPERATORS[op_string](actual, expected):
                return False
        return True

    def stream(self):
        self.client.check_available()
        bucket = self.client._data.get(self.collection, {})
        rows = [(doc_id, dict(payload)) for doc_id, payload in bucket.items() if self._matches(payload)]
        # 安定ソートを後ろの order_by から順に適用し、複合ソートを再現する
        for field_path, descending in reversed(self.orderings):
            rows.sort(key=lambda row, fp=field_path: row[1].get(fp) or "", reverse=descending)
        if self.max_results is not None:
            rows = rows[: self.max_results]
        self.client.queries.append(self)
        for doc_id, payload in rows:
            yield FakeSnapshot(doc_id, payload)


class FakeCollection(FakeQuery):
    def document(self, doc_id: str) -> FakeDocument:
        return FakeDocument(self.client, self.collection, doc_id)


@dataclass
class FakeFirestoreClient:
    """google.cloud.firestore.Client 互換の最小フェイク。

    - _data は collection ごとに {doc_id: payload} を保持し、テスト毎に新規インスタンスで分離する
    - queries には実行済みクエリを記録する
    - fail_with に例外を設定すると、以降の読み書きでその例外を送出する（障害注入）
    """

    _data: dict[str, dict[str, dict[str, Any]]] = field(default_factory=dict)
    queries: list[FakeQuery] = field(default_factory=list)
    fail_with: Exception | None = None

    def check_available(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, name)
