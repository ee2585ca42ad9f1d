"""Repository abstractions for database interactions."""

from .market_repository import (
    BettingMarketRepository,
    InvalidMarketTransitionError,
    MarketNotFoundError,
)
from .types import MarketSyncRecord, TournamentMarketGroup

__all__ = [
    "BettingMarketRepository",
    "InvalidMarketTransitionError",
    "MarketNotFoundError",
    "MarketSyncRecord",
    "TournamentMarketGroup",
]
