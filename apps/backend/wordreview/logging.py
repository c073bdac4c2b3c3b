"""Structured logging for the spaced-repetition core.

SRS のイベントは `user_id` / `item_id` をキーにした JSON 1 行として出力する。
Firestore の認証情報などがイベントに紛れ込んでも出力前にマスクされる。
"""

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import logging
import structlog
from structlog import contextvars as structlog_contextvars
from .config import settings


_REDACTED = "***"
_SECRET_MARKERS = ("token", "secret", "authorization", "password", "credential", "key")
# key を含むが秘匿情報ではないフィールド
_PUBLIC_FIELDS = frozenset({"cache_key"})


def _looks_secret(field: str) -> bool:
    name = field.lower()
    return name not in _PUBLIC_FIELDS and any(marker in name for marker in _SECRET_MARKERS)


def _redact(raw: object) -> str:
    """長い値は先頭と末尾 4 文字だけ残し、短い値は丸ごと隠す。"""

    text = "" if raw is None else str(raw).strip()
    if len(text) <= 8:
        return _REDACTED
    return f"{text[:4]}…{text[-4:]}"


def _scrub(field: str, value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _scrub(str(k), v) for k, v in value.items()}
    return _redact(value) if _looks_secret(field) else value


def redact_secrets(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """structlog processor masking secret-looking fields, nested mappings included."""

    return {
        field: value if field == "event" else _scrub(field, value)
        for field, value in event_dict.items()
    }


@contextmanager
def review_context(user_id: str, item_id: str | None = None) -> Iterator[None]:
    """Bind user/item ids to every event logged inside the block."""

    bound: dict[str, str] = {"user_id": user_id}
    if item_id is not None:
        bound["item_id"] = item_id
    with structlog_contextvars.bound_contextvars(**bound):
        yield


def configure_logging() -> None:
    """Route structlog through stdlib logging as single-line JSON.

    ルートロガーは設定値 (LOG_LEVEL) のレベルで初期化し、書式は %(message)s に固定する。
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler()],
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog_contextvars.merge_contextvars,
            redact_secrets,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


logger = structlog.get_logger()
