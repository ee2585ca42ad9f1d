"""Whole-table verification: final standings reconstructed from every hand."""

from __future__ import annotations

from loguru import logger

from app.domain import FinalStanding, GameSummary, TournamentResult

from .client import PokerNowClient
from .parser import parse_bulk_csv, parse_hand_logs


def build_standings(summary: GameSummary) -> list[FinalStanding]:
    """Rank players from a parsed game.

    Survivors of the last hand come first (largest stack first), then busted
    players with later bust-outs ranked higher, then anyone seen earlier who
    is missing from both lists. A positive stack after a bust cancels it, so
    rebuys are not counted as eliminations.
    """

    hands = sorted(summary.hands, key=lambda hand: hand.hand_number)
    if not hands:
        return []

    seen: list[str] = []
    bust_hand: dict[str, int] = {}
    for hand in hands:
        for player, stack in hand.players.items():
            if player not in seen:
                seen.append(player)
            if stack == 0:
                bust_hand.setdefault(player, hand.hand_number)
            else:
                bust_hand.pop(player, None)

    survivors = sorted(
        hands[-1].active_players().items(), key=lambda item: item[1], reverse=True
    )
    eliminated = sorted(bust_hand.items(), key=lambda item: item[1], reverse=True)

    standings: list[FinalStanding] = []
    placed: set[str] = set()

    def place(player: str, stack: int) -> None:
        if player in placed:
            return
        placed.add(player)
        standings.append(FinalStanding(player=player, position=len(standings) + 1, final_stack=stack))

    for player, stack in survivors:
        place(player, stack)
    for player, _ in eliminated:
        place(player, 0)
    for player in seen:
        place(player, 0)
    return standings


def _result_from_summary(table_id: str, summary: GameSummary) -> TournamentResult:
    standings = build_standings(summary)
    return TournamentResult(
        table_id=table_id,
        total_hands=summary.total_hands,
        winner=standings[0].player if standings else "",
        final_standings=standings,
        player_stats=summary.player_stats,
        verified=True,
    )


class TournamentVerifier:
    """Reconstruct a finished table's final standings for settlement review."""

    def __init__(self, client: PokerNowClient) -> None:
        self._client = client

    def verify_table(self, table_id: str) -> TournamentResult:
        try:
            last_hand = self._client.find_last_hand(table_id)
            logger.info("Verifying table {}: fetching {} hands", table_id, last_hand)
            raw_hands = self._client.fetch_hand_range(table_id, 1, last_hand)
            if not raw_hands:
                return TournamentResult(
                    table_id=table_id,
                    verification_error="No hands found for this table.",
                )
            return _result_from_summary(table_id, parse_hand_logs(raw_hands))
        except Exception as exc:
            logger.exception("Tournament verification failed for table {}", table_id)
            return TournamentResult(table_id=table_id, verification_error=str(exc) or type(exc).__name__)

    def verify_csv(self, table_id: str, csv_text: str) -> TournamentResult:
        summary = parse_bulk_csv(csv_text)
        if not summary.hands:
            return TournamentResult(
                table_id=table_id,
                verification_error="CSV export contains no hands.",
            )
        return _result_from_summary(table_id, summary)


__all__ = ["TournamentVerifier", "build_standings"]
