"""Ports (interfaces) consumed by the spaced-repetition core.

The SRS components depend on these abstractions only. Concrete adapters live in
`wordreview.store` (SQLite / Firestore) and `wordreview.cache` (in-memory TTL).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date
from typing import Any

from .models import AttemptScore, ExerciseRef, WeakItem


class PerformanceHistoryStore(ABC):
    """Append-only log of per-attempt scores keyed by (user, item)."""

    @abstractmethod
    async def record(self, attempt: AttemptScore) -> AttemptScore:
        """Persist a new attempt and return it."""

    @abstractmethod
    async def get_recent(self, user_id: str, item_id: str, limit: int) -> list[AttemptScore]:
        """Return at most `limit` attempts for the pair, newest first."""


class WeakItemStore(ABC):
    """Durable weak-item records holding SM-2 scheduling state."""

    @abstractmethod
    async def get(self, user_id: str, item_id: str) -> WeakItem | None:
        ...

    @abstractmethod
    async def upsert(self, item: WeakItem) -> WeakItem:
        """Insert or replace the record for (item.user_id, item.item_id)."""

    @abstractmethod
    async def delete(self, user_id: str, item_id: str) -> bool:
        """Delete the record; return False when nothing was stored."""

    @abstractmethod
    async def list_due(self, user_id: str, as_of: date) -> list[WeakItem]:
        """Return items with next_review <= as_of, earliest first."""

    @abstractmethod
    async def list_for_user(self, user_id: str) -> list[WeakItem]:
        """Return every weak item of the user, earliest next_review first."""


class ReviewCache(ABC):
    """Ephemeral TTL key-value cache. Values must be JSON compatible."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def invalidate(self, key: str) -> None:
        ...


class ExerciseResolver(ABC):
    """Maps weak items to displayable exercise references."""

    @abstractmethod
    async def resolve(self, weak_items: Sequence[WeakItem]) -> list[ExerciseRef]:
        """Return exercises in the same order as `weak_items`.

        Items without an exercise may be skipped.
        """
