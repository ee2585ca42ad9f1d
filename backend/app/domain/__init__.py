"""Domain models for hands, resolution verdicts, and market odds."""

from .models import (
    ActionKind,
    CommunityCards,
    FinalStanding,
    GameSummary,
    HandRecord,
    HandWinner,
    LogEntry,
    MarketSnapshot,
    OutcomeOdds,
    OutcomeSnapshot,
    PlayerAction,
    PlayerStats,
    ResolutionVerdict,
    TournamentResult,
    VerdictStatus,
)

__all__ = [
    "ActionKind",
    "CommunityCards",
    "FinalStanding",
    "GameSummary",
    "HandRecord",
    "HandWinner",
    "LogEntry",
    "MarketSnapshot",
    "OutcomeOdds",
    "OutcomeSnapshot",
    "PlayerAction",
    "PlayerStats",
    "ResolutionVerdict",
    "TournamentResult",
    "VerdictStatus",
]
