"""Parse PokerNow table logs into typed hand records.

The log format is not under our control, so parsing is best effort: every
line is tested against an ordered table of patterns, the first match wins,
and lines that match nothing are skipped.
"""

from __future__ import annotations

import csv
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Sequence

from dateutil import parser as date_parser
from loguru import logger

from app.domain import (
    ActionKind,
    CommunityCards,
    GameSummary,
    HandRecord,
    HandWinner,
    LogEntry,
    PlayerAction,
    PlayerStats,
)

HAND_START_MARKER = "-- starting hand #"

_HAND_NUMBER_RE = re.compile(r"-- starting hand #(\d+)")
_STACK_PAIR_RE = re.compile(r'#\d+ "(.+?)" \((\d+)\)')
_TERMINAL_HINTS = ("quits", "collected", "-- ending hand")


@dataclass(slots=True)
class _HandDraft:
    hand_number: int = 0
    hand_id: str = ""
    game_type: str = ""
    dealer: str = ""
    players: dict[str, int] = field(default_factory=dict)
    actions: list[PlayerAction] = field(default_factory=list)
    flop: tuple[str, ...] | None = None
    turn: str | None = None
    river: str | None = None
    winner: HandWinner | None = None
    pot: int = 0

    def build(self) -> HandRecord:
        return HandRecord(
            hand_number=self.hand_number,
            hand_id=self.hand_id,
            game_type=self.game_type,
            dealer=self.dealer,
            players=dict(self.players),
            actions=tuple(self.actions),
            community_cards=CommunityCards(flop=self.flop, turn=self.turn, river=self.river),
            winner=self.winner,
            pot=self.pot,
        )


_Handler = Callable[[_HandDraft, "re.Match[str]", LogEntry], None]


def _on_hand_start(draft: _HandDraft, match: re.Match[str], entry: LogEntry) -> None:
    draft.hand_number = int(match.group(1))
    draft.hand_id = match.group(2)
    draft.game_type = match.group(3).strip()
    draft.dealer = match.group(4) or ""


def _on_stacks(draft: _HandDraft, match: re.Match[str], entry: LogEntry) -> None:
    for pair in match.group(1).split(" | "):
        player_match = _STACK_PAIR_RE.search(pair)
        if player_match:
            draft.players[player_match.group(1)] = int(player_match.group(2))


def _on_collect(draft: _HandDraft, match: re.Match[str], entry: LogEntry) -> None:
    amount = int(match.group(2))
    draft.pot += amount
    if draft.winner is not None:
        # Split pots: the first collector stays the recorded winner.
        return
    combination = match.group(4)
    draft.winner = HandWinner(
        player=match.group(1),
        amount=amount,
        hand_description=match.group(3),
        cards=tuple(combination.split(", ")) if combination else None,
    )


def _action(kind: ActionKind, amount_group: int | None = None) -> _Handler:
    def handler(draft: _HandDraft, match: re.Match[str], entry: LogEntry) -> None:
        amount = int(match.group(amount_group)) if amount_group else None
        draft.actions.append(
            PlayerAction(
                player=match.group(1),
                kind=kind,
                timestamp=entry.created_at,
                amount=amount,
            )
        )

    return handler


def _on_flop(draft: _HandDraft, match: re.Match[str], entry: LogEntry) -> None:
    draft.flop = tuple(match.group(1).split(", "))


def _on_turn(draft: _HandDraft, match: re.Match[str], entry: LogEntry) -> None:
    draft.turn = match.group(1)


def _on_river(draft: _HandDraft, match: re.Match[str], entry: LogEntry) -> None:
    draft.river = match.group(1)


# Order matters: the first pattern that matches a line handles it. Pot
# collection sits ahead of the betting actions so a name containing an
# action keyword is never misread.
LINE_PATTERNS: tuple[tuple[re.Pattern[str], _Handler], ...] = (
    (
        re.compile(
            r'-- starting hand #(\d+) \(id: (\w+)\)\s+(.+?)\s*'
            r'(?:\(dealer: "(.+?)"\)|\(dead button\))?\s*(?:--)?\s*$'
        ),
        _on_hand_start,
    ),
    (re.compile(r"Player stacks: (.+)"), _on_stacks),
    (
        re.compile(
            r'"(.+?)" collected (\d+) from pot'
            r"(?:\s+with (.+?) \(combination: (.+?)\))?"
        ),
        _on_collect,
    ),
    (re.compile(r'"(.+?)" posts an ante of (\d+)'), _action(ActionKind.ANTE, 2)),
    (re.compile(r'"(.+?)" posts a (?:small|big) blind of (\d+)'), _action(ActionKind.BLIND, 2)),
    (re.compile(r'"(.+?)" folds'), _action(ActionKind.FOLD)),
    (re.compile(r'"(.+?)" checks'), _action(ActionKind.CHECK)),
    (re.compile(r'"(.+?)" calls (\d+)'), _action(ActionKind.CALL, 2)),
    (re.compile(r'"(.+?)" raises to (\d+)'), _action(ActionKind.RAISE, 2)),
    (re.compile(r'"(.+?)" bets (\d+)'), _action(ActionKind.BET, 2)),
    (re.compile(r"Flop:\s+\[(.+?)\]"), _on_flop),
    (re.compile(r"Turn: .+ \[(.+?)\]"), _on_turn),
    (re.compile(r"River: .+ \[(.+?)\]"), _on_river),
)


def _coerce_entry(line: LogEntry | Mapping[str, Any]) -> LogEntry:
    if isinstance(line, LogEntry):
        return line
    return LogEntry.from_payload(line)


def chronological(lines: Sequence[LogEntry | Mapping[str, Any]]) -> list[LogEntry]:
    """Return log lines oldest first.

    The API serves lines newest first, so they are reversed and then stably
    sorted by timestamp; already-chronological input comes out unchanged.
    """

    entries = [_coerce_entry(line) for line in reversed(lines)]
    entries.sort(key=lambda entry: entry.created_at)
    return entries


def parse_hand(lines: Sequence[LogEntry | Mapping[str, Any]] | None) -> HandRecord | None:
    """Build a :class:`HandRecord` from one hand's log lines, or ``None`` when empty."""

    if not lines:
        return None

    draft = _HandDraft()
    for entry in chronological(lines):
        for pattern, handler in LINE_PATTERNS:
            match = pattern.search(entry.msg)
            if match:
                handler(draft, match, entry)
                break
    return draft.build()


def parse_hand_logs(hands: Iterable[Sequence[LogEntry | Mapping[str, Any]]]) -> GameSummary:
    """Parse several hands and aggregate per-player statistics."""

    parsed: list[HandRecord] = []
    stats: dict[str, PlayerStats] = {}
    for hand_lines in hands:
        hand = parse_hand(hand_lines)
        if hand is None:
            continue
        parsed.append(hand)
        for player in hand.players:
            player_stats = stats.setdefault(player, PlayerStats())
            player_stats.hands_played += 1
            if hand.winner and hand.winner.player == player:
                player_stats.hands_won += 1
                player_stats.total_winnings += hand.winner.amount
    return GameSummary(total_hands=len(parsed), hands=parsed, player_stats=stats)


# ----------------------------------------------------------------------
# Bulk CSV export

_MESSAGE_COLUMNS = ("msg", "entry", "message")
_TIMESTAMP_COLUMNS = ("entry_at", "at", "created_at", "createdat")


def _column_index(header: list[str], candidates: Sequence[str], default: int) -> int:
    for name in candidates:
        if name in header:
            return header.index(name)
    return default


def _parse_timestamp(value: str) -> int:
    candidate = value.strip().strip('"')
    if not candidate:
        return 0
    if candidate.isdigit():
        return int(candidate)
    try:
        parsed = date_parser.isoparse(candidate)
    except (ValueError, OverflowError):
        return 0
    return int(parsed.timestamp() * 1000)


def _unquote(value: str) -> str:
    text = value.strip()
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1].replace('""', '"')
    return text


def _extract_row(line: str, *, width: int, msg_index: int, ts_index: int) -> LogEntry | None:
    """Pull ``(created_at, msg)`` out of one export row.

    Exports are not reliably quoted: messages carry bare commas (board cards)
    and bare double quotes (player names). Columns left of the message are
    taken from the front of the row, columns right of it from the back, and
    whatever remains in between is the message.
    """

    parts = line.split(",")
    if len(parts) < width:
        return None

    end = len(parts) - (width - msg_index - 1)
    msg = _unquote(",".join(parts[msg_index:end]))
    if not msg:
        return None

    columns = parts[:msg_index] + [msg] + parts[end:]
    created_at = _parse_timestamp(columns[ts_index]) if ts_index < len(columns) and ts_index != msg_index else 0
    return LogEntry(created_at=created_at, msg=msg)


def _csv_entries(csv_text: str) -> list[LogEntry]:
    lines = [line.rstrip("\r") for line in (csv_text or "").splitlines() if line.strip()]
    if len(lines) < 2:
        return []

    header = [column.strip().lower() for column in next(csv.reader([lines[0]]))]
    msg_index = _column_index(header, _MESSAGE_COLUMNS, 0)
    ts_index = _column_index(header, _TIMESTAMP_COLUMNS, 1 if msg_index == 0 else 0)

    entries: list[LogEntry] = []
    for line_number, line in enumerate(lines[1:], start=2):
        entry = _extract_row(line, width=len(header), msg_index=msg_index, ts_index=ts_index)
        if entry is None:
            logger.debug("Skipping malformed CSV row {}", line_number)
            continue
        entries.append(entry)
    return entries


def _is_newest_first(entries: Sequence[LogEntry]) -> bool:
    numbers = [
        int(match.group(1))
        for match in (_HAND_NUMBER_RE.search(entry.msg) for entry in entries)
        if match
    ]
    if len(numbers) >= 2 and numbers[0] != numbers[-1]:
        return numbers[0] > numbers[-1]
    first = entries[0].msg.lower()
    return any(hint in first for hint in _TERMINAL_HINTS)


def split_hands(entries: Sequence[LogEntry]) -> list[list[LogEntry]]:
    """Segment chronological lines into per-hand chunks on the hand-start marker."""

    chunks: list[list[LogEntry]] = []
    current: list[LogEntry] | None = None
    for entry in entries:
        if HAND_START_MARKER in entry.msg:
            current = [entry]
            chunks.append(current)
        elif current is not None:
            current.append(entry)
    return chunks


def parse_bulk_csv(csv_text: str) -> GameSummary:
    """Parse a full-table CSV export into a :class:`GameSummary`."""

    entries = _csv_entries(csv_text)
    if not entries:
        return GameSummary(total_hands=0)

    if _is_newest_first(entries):
        entries.reverse()

    # parse_hand expects the API's newest-first order for each hand.
    hands = [list(reversed(chunk)) for chunk in split_hands(entries)]
    logger.debug("Bulk CSV split into {} hands from {} lines", len(hands), len(entries))
    return parse_hand_logs(hands)


__all__ = [
    "HAND_START_MARKER",
    "LINE_PATTERNS",
    "chronological",
    "parse_bulk_csv",
    "parse_hand",
    "parse_hand_logs",
    "split_hands",
]
