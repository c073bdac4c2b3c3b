"""Typed errors raised by the spaced-repetition core.

ストア層の障害は `StoreUnavailableError` としてそのまま呼び出し元へ伝播させ、
コア自身はリトライしない。キャッシュ障害はここには含めない（BestEffortCache が
ログに残して握りつぶす）。
"""

from __future__ import annotations


class SRSError(Exception):
    """Base class for every error raised by wordreview."""


class NotFoundError(SRSError, LookupError):
    """A weak item was required but has not been classified yet."""

    def __init__(self, user_id: str, item_id: str) -> None:
        super().__init__(f"weak item not found: user={user_id} item={item_id}")
        self.user_id = user_id
        self.item_id = item_id


class ValidationFailure(SRSError, ValueError):
    """An input was outside its documented range."""


class StoreUnavailableError(SRSError):
    """The backing store could not be reached or timed out."""

    def __init__(self, backend: str, detail: str) -> None:
        super().__init__(f"{backend} store unavailable: {detail}")
        self.backend = backend
