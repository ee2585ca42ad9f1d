"""Betting market persistence helpers."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from app.domain import MarketSnapshot, OutcomeOdds, OutcomeSnapshot
from app.models import (
    BettingMarket,
    BettingOutcome,
    MarketStatus,
    ResolutionStatus,
    Tournament,
    TournamentStatus,
)

from .types import MarketSyncRecord, TournamentMarketGroup


class MarketNotFoundError(LookupError):
    """Raised when a betting market id does not exist."""


class InvalidMarketTransitionError(ValueError):
    """Raised when a lifecycle action does not apply to the market's current state."""


def _outcome_snapshot(outcome: BettingOutcome) -> OutcomeSnapshot:
    return OutcomeSnapshot(
        outcome_id=outcome.id,
        label=outcome.label,
        total_bets=float(outcome.total_bets or 0),
        bet_count=int(outcome.bet_count or 0),
    )


class BettingMarketRepository:
    """Encapsulate betting market and outcome persistence concerns."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Queries

    def get_market(self, market_id: str) -> BettingMarket | None:
        query = (
            select(BettingMarket)
            .options(selectinload(BettingMarket.outcomes))
            .where(BettingMarket.id == market_id)
        )
        return self._session.execute(query).scalar_one_or_none()

    def _require_market(self, market_id: str) -> BettingMarket:
        market = self.get_market(market_id)
        if market is None:
            raise MarketNotFoundError(f"Market {market_id} not found")
        return market

    def get_market_snapshot(self, market_id: str) -> MarketSnapshot | None:
        market = self.get_market(market_id)
        if market is None:
            return None
        return MarketSnapshot(
            market_id=market.id,
            total_pool=float(market.total_pool or 0),
            pool_pre_seed=float(market.pool_pre_seed or 0),
            bookmaking_fee=float(market.bookmaking_fee or 0),
            outcomes=tuple(_outcome_snapshot(outcome) for outcome in market.outcomes),
        )

    def list_open_autonomous_markets_by_tournament(self) -> list[TournamentMarketGroup]:
        open_autonomous = (
            BettingMarket.status == MarketStatus.OPEN.value,
            BettingMarket.is_autonomous.is_(True),
        )
        query = (
            select(BettingMarket)
            .join(Tournament, BettingMarket.tournament)
            .options(selectinload(BettingMarket.outcomes))
            .where(Tournament.status == TournamentStatus.ACTIVE.value, *open_autonomous)
            .order_by(Tournament.created_at.asc(), Tournament.id.asc(), BettingMarket.id.asc())
        )
        markets = self._session.execute(query).scalars().all()

        grouped: dict[str, TournamentMarketGroup] = {}
        for market in markets:
            bucket = grouped.get(market.tournament_id)
            if bucket is None:
                bucket = TournamentMarketGroup(
                    tournament_id=market.tournament_id,
                    table_id=market.tournament.table_id,
                )
                grouped[market.tournament_id] = bucket
            bucket.markets.append(
                MarketSyncRecord(
                    market_id=market.id,
                    last_synced_hand=market.last_synced_hand or 0,
                    is_paused=bool(market.is_paused),
                    outcomes=tuple(_outcome_snapshot(outcome) for outcome in market.outcomes),
                )
            )
        return list(grouped.values())

    # ------------------------------------------------------------------
    # Mutations

    def update_sync_progress(self, market_ids: Sequence[str], hand_number: int) -> int:
        """Advance ``last_synced_hand``; markets already at or past ``hand_number`` are untouched."""

        if not market_ids:
            return 0
        statement = (
            update(BettingMarket)
            .where(
                BettingMarket.id.in_(list(market_ids)),
                BettingMarket.last_synced_hand < hand_number,
            )
            .values(last_synced_hand=hand_number)
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(statement).rowcount or 0

    def write_outcome_odds(self, market_id: str, odds: Iterable[OutcomeOdds]) -> None:
        for outcome_odds in odds:
            self._session.execute(
                update(BettingOutcome)
                .where(
                    BettingOutcome.id == outcome_odds.outcome_id,
                    BettingOutcome.market_id == market_id,
                )
                .values(current_odds=outcome_odds.odds)
                .execution_options(synchronize_session=False)
            )

    def pause_markets(self, market_ids: Sequence[str], reason: str) -> int:
        if not market_ids:
            return 0
        statement = (
            update(BettingMarket)
            .where(
                BettingMarket.id.in_(list(market_ids)),
                BettingMarket.status == MarketStatus.OPEN.value,
            )
            .values(is_paused=True, suspension_reason=reason)
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(statement).rowcount or 0

    def propose_winner(self, market_id: str, outcome_id: str, decision_trace: str | None) -> BettingMarket:
        market = self._require_market(market_id)
        if market.status != MarketStatus.OPEN.value:
            raise InvalidMarketTransitionError(
                f"Market {market_id} is {market.status}; only OPEN markets accept a proposal"
            )
        if outcome_id not in {outcome.id for outcome in market.outcomes}:
            raise InvalidMarketTransitionError(f"Outcome {outcome_id} does not belong to market {market_id}")
        market.status = MarketStatus.CLOSED.value
        market.resolution_status = ResolutionStatus.PROPOSED.value
        market.ai_proposed_winner_id = outcome_id
        market.decision_trace = decision_trace
        return market

    def approve_proposal(self, market_id: str) -> BettingMarket:
        market = self._require_market(market_id)
        if market.resolution_status != ResolutionStatus.PROPOSED.value or not market.ai_proposed_winner_id:
            raise InvalidMarketTransitionError(f"Market {market_id} has no pending proposal to approve")
        market.status = MarketStatus.SETTLED.value
        market.resolution_status = ResolutionStatus.APPROVED.value
        market.winning_outcome_id = market.ai_proposed_winner_id
        return market

    def reject_proposal(self, market_id: str) -> BettingMarket:
        market = self._require_market(market_id)
        if market.resolution_status != ResolutionStatus.PROPOSED.value:
            raise InvalidMarketTransitionError(f"Market {market_id} has no pending proposal to reject")
        market.status = MarketStatus.OPEN.value
        market.resolution_status = ResolutionStatus.REJECTED.value
        market.ai_proposed_winner_id = None
        return market

    def resume_market(self, market_id: str) -> BettingMarket:
        market = self._require_market(market_id)
        market.is_paused = False
        market.suspension_reason = None
        return market


__all__ = [
    "BettingMarketRepository",
    "InvalidMarketTransitionError",
    "MarketNotFoundError",
]
