from __future__ import annotations

from unittest.mock import MagicMock

from ingestion.parser import parse_hand_logs
from ingestion.verifier import TournamentVerifier, build_standings


def test_build_standings_orders_survivors_then_busts(make_hand):
    summary = parse_hand_logs(
        [
            make_hand(1, {"A": 100, "B": 100, "C": 100, "D": 100}),
            make_hand(2, {"A": 150, "B": 0, "C": 150, "D": 100}),
            make_hand(3, {"A": 250, "B": 0, "C": 0, "D": 150}),
            make_hand(4, {"A": 150, "C": 0, "D": 250}),
        ]
    )

    standings = build_standings(summary)

    assert [(s.player, s.position, s.final_stack) for s in standings] == [
        ("D", 1, 250),
        ("A", 2, 150),
        ("C", 3, 0),
        ("B", 4, 0),
    ]


def test_rebuy_cancels_earlier_bust(make_hand):
    summary = parse_hand_logs(
        [
            make_hand(1, {"A": 0, "B": 200}),
            make_hand(2, {"A": 100, "B": 100}),
            make_hand(3, {"A": 0, "B": 200}),
            make_hand(4, {"B": 200}),
        ]
    )

    standings = build_standings(summary)

    assert [s.player for s in standings] == ["B", "A"]


def test_build_standings_empty_summary():
    assert build_standings(parse_hand_logs([])) == []


def test_verify_table_reconstructs_result(make_hand):
    client = MagicMock()
    client.find_last_hand.return_value = 2
    client.fetch_hand_range.return_value = [
        make_hand(1, {"A": 100, "B": 100}, body=['"A" collected 100 from pot']),
        make_hand(2, {"A": 200, "B": 0}),
    ]

    result = TournamentVerifier(client).verify_table("pglTable1")

    client.fetch_hand_range.assert_called_once_with("pglTable1", 1, 2)
    assert result.verified
    assert result.winner == "A"
    assert result.total_hands == 2
    assert result.player_stats["A"].hands_won == 1
    assert result.verification_error is None


def test_verify_table_without_hands():
    client = MagicMock()
    client.find_last_hand.return_value = 0
    client.fetch_hand_range.return_value = []

    result = TournamentVerifier(client).verify_table("mtt-id")

    assert not result.verified
    assert result.verification_error == "No hands found for this table."


def test_verify_table_reports_errors():
    client = MagicMock()
    client.find_last_hand.side_effect = RuntimeError("network down")

    result = TournamentVerifier(client).verify_table("pglTable1")

    assert not result.verified
    assert result.verification_error == "network down"


def test_verify_csv_uses_bulk_export():
    csv_text = "\n".join(
        [
            "entry,at,order",
            '"-- starting hand #1 (id: h1) No Limit Texas Hold\'em (dealer: ""A"") --",2024-03-01T20:00:00.000Z,1',
            '"Player stacks: #1 ""A"" (300) | #2 ""B"" (0)",2024-03-01T20:00:01.000Z,2',
            '"-- ending hand #1 --",2024-03-01T20:00:02.000Z,3',
        ]
    )

    result = TournamentVerifier(MagicMock()).verify_csv("pglTable1", csv_text)

    assert result.verified
    assert result.winner == "A"
    assert [s.player for s in result.final_standings] == ["A", "B"]


def test_verify_csv_without_hands():
    result = TournamentVerifier(MagicMock()).verify_csv("pglTable1", "entry,at,order\n")

    assert not result.verified
    assert result.verification_error == "CSV export contains no hands."
