from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.core.config import Settings


def test_postgres_urls_are_normalised_for_sqlalchemy():
    settings = Settings(database_url="postgres://user:pw@db.example.com:5432/poker")

    assert settings.resolved_database_url == (
        "postgresql+psycopg://user:pw@db.example.com:5432/poker?sslmode=require"
    )


def test_sqlite_url_is_left_alone():
    assert Settings(database_url="sqlite:///:memory:").resolved_database_url == "sqlite:///:memory:"


def test_base_url_trailing_slash_is_stripped():
    assert Settings(pokernow_base_url="https://www.pokernow.com/api/").pokernow_base_url == (
        "https://www.pokernow.com/api"
    )


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("HAND_FETCH_BATCH_SIZE", "4")
    monkeypatch.setenv("POKERNOW_COOKIE", "npt=abc")

    settings = Settings()

    assert settings.hand_fetch_batch_size == 4
    assert settings.pokernow_cookie == "npt=abc"


def test_odds_bounds_must_be_ordered():
    with pytest.raises(ValidationError):
        Settings(odds_min=5, odds_max=2)
