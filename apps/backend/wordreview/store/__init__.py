"""Store adapters for attempt history and weak items.

`create_srs_store()` は SRS_STORE_BACKEND に応じて SQLite か Firestore の
ストアを返す。どちらも PerformanceHistoryStore と WeakItemStore を兼ねる。
"""

from __future__ import annotations

import os

from google.cloud import firestore

from ..config import Settings, settings as default_settings
from ..logging import logger
from .firestore_store import FirestoreSRSStore
from .sqlite_store import SQLiteSRSStore

_LOCAL_EMULATOR = "127.0.0.1:8080"


def _normalize_emulator_host(raw_host: str | None) -> str | None:
    """Return an http(s) endpoint for the emulator, or None when unset.

    `localhost:8080` のようなスキームなしの値には http:// を補う。
    """

    host = (raw_host or "").strip()
    if not host:
        return None
    return host if "://" in host else f"http://{host}"


def _emulator_endpoint(cfg: Settings) -> str | None:
    configured = cfg.firestore_emulator_host or os.environ.get("FIRESTORE_EMULATOR_HOST")
    if configured:
        return _normalize_emulator_host(configured)
    # production 以外はローカルのエミュレータを既定の接続先にする
    if (cfg.environment or "").strip().lower() != "production":
        return _normalize_emulator_host(_LOCAL_EMULATOR)
    return None


def _build_firestore_client(cfg: Settings) -> firestore.Client:
    project_id = cfg.firestore_project_id or cfg.gcp_project_id
    endpoint = _emulator_endpoint(cfg)
    if endpoint is not None:
        # クライアントは FIRESTORE_EMULATOR_HOST（スキームなし）を見て匿名認証に切り替える
        os.environ.setdefault("FIRESTORE_EMULATOR_HOST", endpoint.split("://", 1)[1])
        logger.info("firestore_emulator_selected", endpoint=endpoint, project=project_id)
        return firestore.Client(project=project_id, client_options={"api_endpoint": endpoint})
    if cfg.strict_mode and not project_id:
        raise RuntimeError("FIRESTORE_PROJECT_ID (or GOOGLE_CLOUD_PROJECT) is required in production (strict mode)")
    return firestore.Client(project=project_id)


def create_srs_store(cfg: Settings | None = None) -> SQLiteSRSStore | FirestoreSRSStore:
    cfg = cfg or default_settings
    if cfg.srs_store_backend == "firestore":
        return FirestoreSRSStore(_build_firestore_client(cfg))
    logger.debug("sqlite_store_selected", db_path=cfg.srs_db_path)
    return SQLiteSRSStore(db_path=cfg.srs_db_path)


__all__ = [
    "FirestoreSRSStore",
    "SQLiteSRSStore",
    "create_srs_store",
]
