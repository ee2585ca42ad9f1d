from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from pydantic import AnyUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    scheme = parsed.scheme.lower()

    if scheme == "postgres":
        scheme = "postgresql"

    if scheme == "postgresql":
        scheme = "postgresql+psycopg"

    if scheme not in {"postgresql+psycopg", "postgresql+asyncpg"}:
        scheme = "postgresql+psycopg"

    query_params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query_params.setdefault("sslmode", "require")
    new_query = urlencode(query_params, doseq=True)

    return urlunparse(parsed._replace(scheme=scheme, query=new_query))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    database_url: AnyUrl | str = Field(
        default="sqlite:///../data/pokermarkets.db",
        description="SQLAlchemy compatible database URL for the market store",
    )
    pokernow_base_url: AnyUrl | str = Field(
        default="https://www.pokernow.com/api",
        description="Base URL for the PokerNow table log API",
    )
    pokernow_cookie: str | None = Field(
        default=None,
        description="Optional session cookie forwarded with every PokerNow request",
    )
    pokernow_request_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout applied to each PokerNow HTTP request",
        gt=0,
    )
    hand_search_upper_bound: int = Field(
        default=5000,
        description="Highest hand number probed when searching for the latest hand",
        ge=1,
    )
    hand_probe_attempts: int = Field(
        default=2,
        description="Attempts per binary-search probe before a network error counts as a missing hand",
        ge=1,
    )
    hand_fetch_batch_size: int = Field(
        default=10,
        description="Number of hands fetched concurrently per batch",
        ge=1,
    )
    hand_fetch_batch_delay_seconds: float = Field(
        default=0.2,
        description="Pause between hand fetch batches to respect the upstream rate limit",
        ge=0,
    )
    sync_poll_interval_seconds: float = Field(
        default=10.0,
        description="Delay between the end of one sync tick and the start of the next",
        gt=0,
    )
    sync_tournament_timeout_seconds: float = Field(
        default=30.0,
        description="Soft deadline for syncing a single tournament within a tick",
        gt=0,
    )
    odds_min: float = Field(default=1.01, description="Lower clamp for decimal odds", gt=1)
    odds_max: float = Field(default=100.0, description="Upper clamp for decimal odds")

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_postgres_urls(cls, value: Any) -> Any:
        if value is None or not isinstance(value, str):
            return value
        if value.startswith("postgres://"):
            return "postgresql://" + value[len("postgres://") :]
        return value

    @field_validator("pokernow_base_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: Any) -> str:
        return str(value).rstrip("/")

    @model_validator(mode="after")
    def _validate_odds_bounds(self) -> "Settings":
        if self.odds_min >= self.odds_max:
            raise ValueError("odds_min must be lower than odds_max")
        return self

    @property
    def resolved_database_url(self) -> str:
        return _ensure_sqlalchemy_postgres_scheme(str(self.database_url))


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
