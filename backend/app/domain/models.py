"""Typed domain representations shared by ingestion, resolution, and odds code."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


@dataclass(slots=True, frozen=True)
class LogEntry:
    """One line of a table log as returned by the log API."""

    created_at: int
    msg: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "LogEntry":
        raw_created = payload.get("createdAt", payload.get("created_at", 0))
        try:
            created_at = int(raw_created)
        except (TypeError, ValueError):
            created_at = 0
        return cls(created_at=created_at, msg=str(payload.get("msg") or ""))


class ActionKind(str, Enum):
    FOLD = "fold"
    CHECK = "check"
    CALL = "call"
    RAISE = "raise"
    BET = "bet"
    ANTE = "ante"
    BLIND = "blind"


@dataclass(slots=True, frozen=True)
class PlayerAction:
    player: str
    kind: ActionKind
    timestamp: int
    amount: int | None = None


@dataclass(slots=True, frozen=True)
class CommunityCards:
    flop: tuple[str, ...] | None = None
    turn: str | None = None
    river: str | None = None


@dataclass(slots=True, frozen=True)
class HandWinner:
    player: str
    amount: int
    hand_description: str | None = None
    cards: tuple[str, ...] | None = None


@dataclass(slots=True, frozen=True)
class HandRecord:
    """Reconstructed state of a single poker hand.

    ``players`` maps each seated player to the stack they started the hand
    with; ``actions`` is in chronological order.
    """

    hand_number: int
    hand_id: str
    game_type: str
    dealer: str
    players: Mapping[str, int]
    actions: tuple[PlayerAction, ...] = ()
    community_cards: CommunityCards = field(default_factory=CommunityCards)
    winner: HandWinner | None = None
    pot: int = 0

    def active_players(self) -> dict[str, int]:
        return {name: stack for name, stack in self.players.items() if stack > 0}


@dataclass(slots=True)
class PlayerStats:
    hands_played: int = 0
    hands_won: int = 0
    total_winnings: int = 0


@dataclass(slots=True)
class GameSummary:
    total_hands: int
    hands: list[HandRecord] = field(default_factory=list)
    player_stats: dict[str, PlayerStats] = field(default_factory=dict)


class VerdictStatus(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"


@dataclass(slots=True, frozen=True)
class ResolutionVerdict:
    """Outcome of one resolution pass over the latest hands of a table."""

    status: VerdictStatus
    confidence: float
    reasoning: str
    is_paused: bool = False
    winner: str | None = None
    decision_trace: str | None = None

    def __post_init__(self) -> None:
        if self.is_paused and self.status is not VerdictStatus.RUNNING:
            raise ValueError("a paused verdict must report RUNNING")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("confidence must be within [0, 1]")

    @property
    def is_completed(self) -> bool:
        return self.status is VerdictStatus.COMPLETED


@dataclass(slots=True, frozen=True)
class OutcomeSnapshot:
    outcome_id: str
    label: str
    total_bets: float = 0.0
    bet_count: int = 0


@dataclass(slots=True, frozen=True)
class MarketSnapshot:
    """The slice of a betting market the odds engine needs."""

    market_id: str
    total_pool: float
    pool_pre_seed: float
    bookmaking_fee: float
    outcomes: tuple[OutcomeSnapshot, ...] = ()


@dataclass(slots=True, frozen=True)
class OutcomeOdds:
    outcome_id: str
    label: str
    odds: float
    total_bets: float
    bet_count: int


@dataclass(slots=True, frozen=True)
class FinalStanding:
    player: str
    position: int
    final_stack: int


@dataclass(slots=True)
class TournamentResult:
    table_id: str
    total_hands: int = 0
    winner: str = ""
    final_standings: list[FinalStanding] = field(default_factory=list)
    player_stats: dict[str, PlayerStats] = field(default_factory=dict)
    verified: bool = False
    verification_error: str | None = None
