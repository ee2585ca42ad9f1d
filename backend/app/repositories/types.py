"""Shared repository result types."""

from __future__ import annotations

from dataclasses import dataclass, field

from app.domain import OutcomeSnapshot


@dataclass(slots=True, frozen=True)
class MarketSyncRecord:
    """Detached view of an open autonomous market used by the sync loop."""

    market_id: str
    last_synced_hand: int
    is_paused: bool = False
    outcomes: tuple[OutcomeSnapshot, ...] = ()


@dataclass(slots=True)
class TournamentMarketGroup:
    """Bundle an active tournament with its open autonomous markets."""

    tournament_id: str
    table_id: str | None
    markets: list[MarketSyncRecord] = field(default_factory=list)

    @property
    def market_ids(self) -> list[str]:
        return [market.market_id for market in self.markets]

    @property
    def min_synced_hand(self) -> int:
        return min((market.last_synced_hand or 0 for market in self.markets), default=0)


__all__ = ["MarketSyncRecord", "TournamentMarketGroup"]
