from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, Sequence

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest

from app.core.config import Settings
from app.db import create_db_engine, create_session_factory, init_db
from app.domain import LogEntry

HandFactory = Callable[..., list[LogEntry]]


def build_hand(
    number: int,
    stacks: dict[str, int],
    *,
    body: Sequence[str] = (),
    start_ts: int | None = None,
    dealer: str | None = None,
) -> list[LogEntry]:
    """Log lines for one hand, newest first like the log API returns them."""

    base = start_ts if start_ts is not None else number * 1_000
    dealer_name = dealer or next(iter(stacks), "nobody")
    seats = " | ".join(f'#{seat} "{name}" ({stack})' for seat, (name, stack) in enumerate(stacks.items(), start=1))
    messages = [
        f'-- starting hand #{number} (id: hand{number}) No Limit Texas Hold\'em (dealer: "{dealer_name}") --',
        f"Player stacks: {seats}",
        *body,
        f"-- ending hand #{number} --",
    ]
    chronological = [LogEntry(created_at=base + offset, msg=msg) for offset, msg in enumerate(messages)]
    return list(reversed(chronological))


@pytest.fixture
def make_hand() -> HandFactory:
    return build_hand


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite:///:memory:",
        pokernow_base_url="https://poker.test/api",
        hand_search_upper_bound=64,
        hand_probe_attempts=2,
        hand_fetch_batch_size=3,
        hand_fetch_batch_delay_seconds=0,
        sync_poll_interval_seconds=10,
        sync_tournament_timeout_seconds=30,
    )


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite:///:memory:")
    init_db(bind=engine)
    factory = create_session_factory(engine)
    yield factory
    engine.dispose()
