"""Parimutuel odds for betting markets.

Formula: ``(total_pool + pool_pre_seed) * (1 - fee) / outcome_total_bets``,
clamped to ``[MIN_ODDS, MAX_ODDS]`` and rounded to two decimals.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol, Sequence

from loguru import logger

from app.core.config import Settings, get_settings
from app.domain import MarketSnapshot, OutcomeOdds
from app.repositories import MarketNotFoundError

MIN_ODDS = 1.01
MAX_ODDS = 100.0

_TWO_PLACES = Decimal("0.01")


class OutcomeNotFoundError(LookupError):
    """Raised when an outcome id is not part of the requested market."""


class OddsStore(Protocol):
    def get_market_snapshot(self, market_id: str) -> MarketSnapshot | None: ...

    def write_outcome_odds(self, market_id: str, odds: Sequence[OutcomeOdds]) -> None: ...


def _round_odds(value: float) -> float:
    return float(Decimal(repr(value)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def net_pool(snapshot: MarketSnapshot) -> float:
    fee = min(max(snapshot.bookmaking_fee, 0.0), 1.0)
    return (max(snapshot.total_pool, 0.0) + max(snapshot.pool_pre_seed, 0.0)) * (1 - fee)


def compute_odds(
    snapshot: MarketSnapshot,
    *,
    min_odds: float = MIN_ODDS,
    max_odds: float = MAX_ODDS,
) -> list[OutcomeOdds]:
    """Return clamped decimal odds for every outcome of ``snapshot``.

    Outcomes without bets get a provisional ``outcome_count * 2`` so a live but
    empty outcome shows plausible odds instead of infinity.
    """

    pool = net_pool(snapshot)
    provisional = min(max_odds, len(snapshot.outcomes) * 2)

    results: list[OutcomeOdds] = []
    for outcome in snapshot.outcomes:
        if outcome.total_bets > 0:
            raw = pool / outcome.total_bets
        else:
            raw = provisional
        clamped = max(min_odds, min(max_odds, raw))
        results.append(
            OutcomeOdds(
                outcome_id=outcome.outcome_id,
                label=outcome.label,
                odds=_round_odds(clamped),
                total_bets=outcome.total_bets,
                bet_count=outcome.bet_count,
            )
        )
    return results


class OddsEngine:
    """Compute, persist, and lock odds for markets held in an :class:`OddsStore`."""

    def __init__(self, store: OddsStore, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._store = store
        self._min_odds = settings.odds_min
        self._max_odds = settings.odds_max

    def live_odds(self, market_id: str) -> list[OutcomeOdds]:
        snapshot = self._store.get_market_snapshot(market_id)
        if snapshot is None:
            raise MarketNotFoundError(f"Market {market_id} not found")
        return compute_odds(snapshot, min_odds=self._min_odds, max_odds=self._max_odds)

    def persist_odds(self, market_id: str) -> list[OutcomeOdds]:
        odds = self.live_odds(market_id)
        self._store.write_outcome_odds(market_id, odds)
        logger.debug("Persisted odds for market {}: {}", market_id, {o.label: o.odds for o in odds})
        return odds

    def lock_odds(self, market_id: str, outcome_id: str) -> float:
        """Odds a bettor is quoted at placement time."""

        for outcome in self.live_odds(market_id):
            if outcome.outcome_id == outcome_id:
                return outcome.odds
        raise OutcomeNotFoundError(f"Outcome {outcome_id} not found in market {market_id}")


__all__ = [
    "MAX_ODDS",
    "MIN_ODDS",
    "MarketNotFoundError",
    "OddsEngine",
    "OutcomeNotFoundError",
    "compute_odds",
    "net_pool",
]
