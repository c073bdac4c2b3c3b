from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DB_PATH = ".data/srs.sqlite3"
_SUPPORTED_STORE_BACKENDS = frozenset({"sqlite", "firestore"})
_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class Settings(BaseSettings):
    """Spaced-repetition settings loaded from environment variables.

    環境変数から読み込まれる SRS コアの設定クラス。
    - environment: 実行環境（development/staging/production など）
    - srs_store_backend: 成績履歴と弱点アイテムを保存するストア（sqlite/firestore）
    - srs_*: SM-2 派生スケジューラと日次キュー合成で使う閾値
    """

    environment: str = Field(
        default="development",
        description="Runtime environment / 実行環境",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level / ルートロガーのログレベル",
    )

    # --- データ永続化設定 ---
    srs_store_backend: str = Field(
        default="sqlite",
        description="Store backend for attempts and weak items (sqlite|firestore) / 永続化バックエンド",
    )
    srs_db_path: str = Field(
        default=DEFAULT_DB_PATH,
        description="Path to SQLite database for SRS persistence / SRS用SQLite DBパス",
    )
    firestore_project_id: str | None = Field(
        default=None,
        description="Firestore project id / Firestore のプロジェクトID",
    )
    gcp_project_id: str | None = Field(
        default=None,
        description="Fallback GCP project id / 予備の GCP プロジェクトID",
        validation_alias=AliasChoices("gcp_project_id", "google_cloud_project"),
    )
    firestore_emulator_host: str | None = Field(
        default=None,
        description="Firestore emulator host (host:port) / Firestore エミュレータのホスト",
    )

    # --- 成績集計と弱点判定 ---
    srs_success_threshold: int = Field(
        default=70,
        description="Score counted as a successful attempt / 成功とみなすスコア下限",
    )
    srs_weak_rate_threshold: float = Field(
        default=70.0,
        description="Success rate below which an item is weak (%) / 弱点判定の成功率閾値",
    )
    srs_history_window: int = Field(
        default=10,
        description="Number of recent attempts used for the success rate / 成功率の集計対象件数",
    )
    srs_repeated_error_streak: int = Field(
        default=3,
        description="Consecutive failures that flag an item / 連続失敗で弱点とみなす回数",
    )
    srs_initial_review_delay_days: int = Field(
        default=0,
        description=(
            "Days until a newly flagged item becomes due (0 = immediately) / "
            "新規弱点アイテムが出題対象になるまでの日数"
        ),
    )

    # --- SM-2 パラメータ ---
    srs_initial_interval: int = Field(
        default=1,
        description="Initial review interval in days / 初期復習間隔（日）",
    )
    srs_initial_ease: float = Field(
        default=2.5,
        description="Initial ease factor / 初期 ease factor",
    )
    srs_min_ease: float = Field(
        default=1.3,
        description="Lower bound of the ease factor / ease factor の下限",
    )
    srs_max_ease: float = Field(
        default=3.0,
        description="Upper bound of the ease factor / ease factor の上限",
    )
    srs_failure_ease_penalty: float = Field(
        default=0.2,
        description="Ease decrease on a failed review / 失敗時の ease 減少量",
    )

    # --- 卒業判定 ---
    srs_graduation_attempts: int = Field(
        default=3,
        description="Recent passing attempts required to graduate / 卒業に必要な直近成功回数",
    )
    srs_graduation_mean: float = Field(
        default=85.0,
        description="Minimum mean of the recent attempts to graduate / 卒業に必要な平均スコア",
    )

    # --- 日次キュー ---
    srs_daily_min_slots: int = Field(
        default=10,
        description="Minimum size of the daily queue / 日次キューの最小スロット数",
    )
    srs_review_ratio: float = Field(
        default=0.3,
        description="Maximum share of reviews in the daily queue / 日次キュー内の復習上限比率",
    )
    srs_daily_queue_ttl_seconds: int = Field(
        default=24 * 60 * 60,
        description="TTL of the cached daily queue (seconds) / 日次キューのキャッシュTTL（秒）",
    )
    srs_schedule_ttl_seconds: int = Field(
        default=60 * 60,
        description="TTL of cached review schedules (seconds) / スケジュール結果のキャッシュTTL（秒）",
    )

    # --- Strict mode ---
    strict_mode: bool = Field(
        default=True,
        description="Fail fast on missing/invalid configuration (disable only for tests)",
    )

    # Pydantic v2 settings config
    # - env_file: .env を読み込む
    # - extra: .env に存在する未使用キーを無視
    # - case_sensitive: 環境変数キーの大小文字を区別しない
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("srs_store_backend", mode="before")
    @classmethod
    def _normalise_store_backend(cls, raw_backend: object) -> str:
        """Lower-case and validate the configured store backend.

        `SQLite` や ` firestore ` のような表記揺れは正規化し、未対応の値は
        読み込み段階で拒否する。
        """

        backend = str(raw_backend or "").strip().lower()
        if backend not in _SUPPORTED_STORE_BACKENDS:
            raise ValueError(
                f"SRS_STORE_BACKEND must be one of {sorted(_SUPPORTED_STORE_BACKENDS)}",
            )
        return backend

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, raw_level: object) -> str:
        level = str(raw_level or "INFO").strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def _validate_srs_bounds(self) -> "Settings":
        """Reject SM-2 parameters that cannot satisfy the clamping invariants.

        ease の上下限が逆転していたり、初期値が範囲外だとスケジューラの
        クランプ処理が意味を失う。復習比率も (0, 1] に収まっている必要がある。
        """

        if self.srs_min_ease > self.srs_max_ease:
            raise ValueError("SRS_MIN_EASE must not exceed SRS_MAX_EASE")
        if self.srs_min_ease < 1.3 or self.srs_max_ease > 3.0:
            raise ValueError("ease bounds must stay within [1.3, 3.0]")
        if not self.srs_min_ease <= self.srs_initial_ease <= self.srs_max_ease:
            raise ValueError("SRS_INITIAL_EASE must lie within [SRS_MIN_EASE, SRS_MAX_EASE]")
        if not 0.0 < self.srs_review_ratio <= 1.0:
            raise ValueError("SRS_REVIEW_RATIO must be in (0, 1]")
        if self.srs_initial_interval < 1:
            raise ValueError("SRS_INITIAL_INTERVAL must be at least 1 day")
        if self.srs_history_window < 1 or self.srs_graduation_attempts < 1:
            raise ValueError("SRS_HISTORY_WINDOW and SRS_GRADUATION_ATTEMPTS must be positive")
        if self.srs_initial_review_delay_days < 0:
            raise ValueError("SRS_INITIAL_REVIEW_DELAY_DAYS must not be negative")
        return self


settings = Settings()
