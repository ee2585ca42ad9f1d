"""Session-scoped facade over the betting market repository.

The sync loop and the odds engine talk to this interface instead of holding
a SQLAlchemy session across network round-trips; every call is its own
transaction.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from sqlalchemy.orm import Session, sessionmaker

from app.db import SessionLocal, session_scope
from app.domain import MarketSnapshot, OutcomeOdds
from app.repositories import BettingMarketRepository, TournamentMarketGroup


class MarketStore(Protocol):
    def list_open_autonomous_markets_by_tournament(self) -> list[TournamentMarketGroup]: ...

    def get_market_snapshot(self, market_id: str) -> MarketSnapshot | None: ...

    def update_sync_progress(self, market_ids: Sequence[str], hand_number: int) -> int: ...

    def write_outcome_odds(self, market_id: str, odds: Sequence[OutcomeOdds]) -> None: ...

    def pause_markets(self, market_ids: Sequence[str], reason: str) -> int: ...

    def propose_winner(self, market_id: str, outcome_id: str, decision_trace: str | None) -> None: ...


class SqlMarketStore:
    """:class:`MarketStore` backed by SQLAlchemy, one transaction per call."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def list_open_autonomous_markets_by_tournament(self) -> list[TournamentMarketGroup]:
        with session_scope(self._session_factory) as session:
            return BettingMarketRepository(session).list_open_autonomous_markets_by_tournament()

    def get_market_snapshot(self, market_id: str) -> MarketSnapshot | None:
        with session_scope(self._session_factory) as session:
            return BettingMarketRepository(session).get_market_snapshot(market_id)

    def update_sync_progress(self, market_ids: Sequence[str], hand_number: int) -> int:
        with session_scope(self._session_factory) as session:
            return BettingMarketRepository(session).update_sync_progress(market_ids, hand_number)

    def write_outcome_odds(self, market_id: str, odds: Sequence[OutcomeOdds]) -> None:
        # One transaction for all outcomes: readers never see a half-updated market.
        with session_scope(self._session_factory) as session:
            BettingMarketRepository(session).write_outcome_odds(market_id, odds)

    def pause_markets(self, market_ids: Sequence[str], reason: str) -> int:
        with session_scope(self._session_factory) as session:
            return BettingMarketRepository(session).pause_markets(market_ids, reason)

    def propose_winner(self, market_id: str, outcome_id: str, decision_trace: str | None) -> None:
        with session_scope(self._session_factory) as session:
            BettingMarketRepository(session).propose_winner(market_id, outcome_id, decision_trace)

    def approve_proposal(self, market_id: str) -> None:
        with session_scope(self._session_factory) as session:
            BettingMarketRepository(session).approve_proposal(market_id)

    def reject_proposal(self, market_id: str) -> None:
        with session_scope(self._session_factory) as session:
            BettingMarketRepository(session).reject_proposal(market_id)

    def resume_market(self, market_id: str) -> None:
        with session_scope(self._session_factory) as session:
            BettingMarketRepository(session).resume_market(market_id)


__all__ = ["MarketStore", "SqlMarketStore"]
