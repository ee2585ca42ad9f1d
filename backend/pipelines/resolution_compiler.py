"""Decide whether a table is still running, needs a pause, or has a winner."""

from __future__ import annotations

from typing import Protocol, Sequence

from loguru import logger

from app.domain import HandRecord, LogEntry, ResolutionVerdict, VerdictStatus
from ingestion.parser import parse_hand

ALL_IN_MARKER = "all in"
ELIMINATION_RULE = "player.stack > 0 AND confirmed_bust_in_consecutive_hands < 1"


class HandSource(Protocol):
    def fetch_hand(self, table_id: str, hand_number: int) -> list[LogEntry] | None: ...


def _running(reasoning: str, *, confidence: float = 0.0, trace: str | None = None) -> ResolutionVerdict:
    return ResolutionVerdict(
        status=VerdictStatus.RUNNING,
        confidence=confidence,
        reasoning=reasoning,
        decision_trace=trace,
    )


def has_all_in(lines: Sequence[LogEntry]) -> bool:
    return any(ALL_IN_MARKER in line.msg.lower() for line in lines)


def confirmed_eliminations(current: HandRecord, previous: HandRecord | None) -> set[str]:
    """Players at zero chips in both this hand and the one before it.

    A player at zero now who still had chips in the previous hand may rebuy
    before the next deal, so they are not counted.
    """

    if previous is None:
        return set()
    eliminated: set[str] = set()
    for player, stack in current.players.items():
        previous_stack = previous.players.get(player)
        if stack == 0 and (previous_stack is None or previous_stack == 0):
            eliminated.add(player)
    return eliminated


class ResolutionCompiler:
    """Rebuy-aware elimination check over the last two hands of a table."""

    def __init__(self, hands: HandSource) -> None:
        self._hands = hands

    def compile(self, table_id: str, last_hand_number: int) -> ResolutionVerdict:
        try:
            return self._compile(table_id, last_hand_number)
        except Exception:
            logger.exception("Resolution compile failed for table {}", table_id)
            return _running("Internal Error")

    def _compile(self, table_id: str, last_hand_number: int) -> ResolutionVerdict:
        if last_hand_number < 2:
            return _running("Not enough hands played to assess elimination.")

        current_lines = self._hands.fetch_hand(table_id, last_hand_number)
        previous_lines = self._hands.fetch_hand(table_id, last_hand_number - 1)

        if not current_lines:
            return _running("No logs for current hand.")

        current = parse_hand(current_lines)
        if current is None:
            return _running("Failed to parse current hand.")
        previous = parse_hand(previous_lines) if previous_lines else None

        current_active = current.active_players()

        # An unresolved all-in gives live watchers an edge; suspend before
        # anything else is decided.
        if has_all_in(current_lines):
            return ResolutionVerdict(
                status=VerdictStatus.RUNNING,
                is_paused=True,
                confidence=0.0,
                reasoning="High Volatility Event: All-In Detected",
                decision_trace=(
                    f"HAND: {last_hand_number} | ACTION: ALL_IN_DETECTED | STATUS: PAUSED_ANTI_SNIPING"
                ),
            )

        eliminated = confirmed_eliminations(current, previous)
        true_active = {
            player: stack for player, stack in current_active.items() if player not in eliminated
        }

        if len(true_active) == 1:
            winner, stack = next(iter(true_active.items()))
            trace = " | ".join(
                [
                    f"HAND: {last_hand_number}",
                    f"ACTIVE_PLAYERS_CURRENT_HAND: {len(current_active)}",
                    f"CONFIRMED_ELIMINATIONS: {len(eliminated)}",
                    f"WINNER: {winner} (stack: {stack})",
                    f"RULE: {ELIMINATION_RULE}",
                    f"REBUY_CHECK: passed (cross-referenced hand {last_hand_number - 1})",
                ]
            )
            logger.info("Table {} resolved at hand {}: winner={}", table_id, last_hand_number, winner)
            return ResolutionVerdict(
                status=VerdictStatus.COMPLETED,
                winner=winner,
                confidence=1.0,
                reasoning=f'"{winner}" is the last player standing with {stack} chips after rebuy check.',
                decision_trace=trace,
            )

        return _running(
            f"{len(true_active)} players still active after rebuy analysis.",
            confidence=0.5,
            trace=f"HAND: {last_hand_number} | ACTIVE: {', '.join(true_active)}",
        )


__all__ = ["ResolutionCompiler", "HandSource", "confirmed_eliminations", "has_all_in"]
