from typing import Annotated

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources.types import NoDecode


DEFAULT_DB_PATH = ".data/flashdeck.sqlite3"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    環境変数から読み込まれるアプリ設定クラス。
    - environment: 実行環境（development/staging/production など）
    - flashdeck_db_path: カードを保存する SQLite DB のパス
    - review_default_limit: 復習キューの既定件数
    """

    environment: str = Field(
        default="development",
        description="Runtime environment / 実行環境",
    )

    # --- データ永続化設定 ---
    flashdeck_db_path: str = Field(
        default=DEFAULT_DB_PATH,
        description="Path to SQLite database for cards / カード用SQLite DBパス",
    )
    default_deck_name: str = Field(
        default="Default",
        description="Deck assigned when a card is created without one / デッキ未指定時の既定デッキ名",
    )

    # --- 復習キュー ---
    review_default_limit: int = Field(
        default=20,
        description="Default size of the due-card batch / 復習キューの既定件数",
    )
    review_max_limit: int = Field(
        default=500,
        description="Upper bound accepted for the due-card batch / 復習キューで受け付ける最大件数",
    )

    # --- HTTP サーバ ---
    host: str = Field(default="127.0.0.1", description="Bind address / 待ち受けアドレス")
    port: int = Field(default=8080, description="Bind port / 待ち受けポート")

    # --- Operations/Observability ---
    rate_limit_per_min_ip: int = Field(
        default=240,
        description="Per-IP API requests per minute / IP単位の毎分上限",
    )
    security_hsts_max_age_seconds: int = Field(
        default=63072000,
        description=(
            "Strict-Transport-Security max-age directive in seconds / "
            "Strict-Transport-Security の max-age（秒）"
        ),
    )
    sentry_dsn: str | None = Field(
        default=None, description="Sentry DSN (enable if set)"
    )
    allowed_cors_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(),
        description=(
            "Comma separated CORS origins / CORS で許可するオリジンのカンマ区切り一覧"
        ),
        validation_alias=AliasChoices("allowed_cors_origins", "cors_allowed_origins"),
    )

    # --- Strict mode ---
    strict_mode: bool = Field(
        default=True,
        description=(
            "Reject a whole import batch when any row has a blank front/back (otherwise skip and report those rows)"
            " / インポート時に front/back が空の行があればバッチ全体を拒否する（無効時はその行を読み飛ばして報告）"
        ),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("default_deck_name", mode="after")
    @classmethod
    def _validate_default_deck_name(cls, value: str) -> str:
        """Reject blank deck names so new cards always carry a grouping key."""

        name = (value or "").strip()
        if not name:
            raise ValueError("DEFAULT_DECK_NAME must be a non-empty string")
        return name

    @field_validator("allowed_cors_origins", mode="before")
    @classmethod
    def _normalise_allowed_cors_origins(
        cls, raw_origins: object
    ) -> tuple[str, ...] | object:  # pragma: no cover - pydantic handles typing
        """Convert environment input into a deduplicated tuple of origins.

        なぜ: CORS 設定を `.env` で管理するときに空白や重複が混ざりやすいため、
        FastAPI へ渡す前にトリムと重複排除を行って安全な配列へ正規化する。
        """

        if raw_origins is None:
            candidates: list[str] = []
        elif isinstance(raw_origins, str):
            candidates = raw_origins.split(",")
        else:
            try:
                candidates = list(raw_origins)
            except TypeError:
                return raw_origins

        normalised: list[str] = []
        seen: set[str] = set()
        for candidate in candidates:
            if not isinstance(candidate, str):
                continue
            trimmed = candidate.strip()
            if not trimmed or trimmed in seen:
                continue
            seen.add(trimmed)
            normalised.append(trimmed)

        return tuple(normalised)

    @model_validator(mode="after")
    def _validate_review_limits(self) -> "Settings":
        """Ensure the due-card batch bounds are usable.

        なぜ: 既定件数が 0 以下だと復習キューが常に 400 を返し、上限より大きいと
        既定値そのものが拒否される。起動時に矛盾を検出しておく。
        """

        if self.review_default_limit <= 0:
            raise ValueError("REVIEW_DEFAULT_LIMIT must be greater than zero")
        if self.review_max_limit < self.review_default_limit:
            raise ValueError(
                "REVIEW_MAX_LIMIT must be greater than or equal to REVIEW_DEFAULT_LIMIT"
            )
        return self


settings = Settings()
