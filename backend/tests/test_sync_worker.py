from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from app.domain import OutcomeSnapshot, ResolutionVerdict, VerdictStatus
from app.repositories import MarketSyncRecord, TournamentMarketGroup
from pipelines.scheduler import ThreadingScheduler
from pipelines.sync_worker import SyncOrchestrator, SyncSummary, _parse_args, match_outcome


class FakeScheduler:
    def __init__(self) -> None:
        self.scheduled: list[tuple[float, object]] = []
        self.cancelled: list[object] = []

    def schedule(self, delay, callback):
        handle = (delay, callback)
        self.scheduled.append(handle)
        return handle

    def cancel(self, handle) -> None:
        self.cancelled.append(handle)

    def run_next(self) -> None:
        _, callback = self.scheduled.pop(0)
        callback()


def _outcomes(*labels: str) -> tuple[OutcomeSnapshot, ...]:
    return tuple(
        OutcomeSnapshot(outcome_id=f"out-{label.lower()}", label=label, total_bets=0.0, bet_count=0)
        for label in labels
    )


def _group(*, table_id="pglTable1", synced=(4, 4), labels=("Alice", "Bob")) -> TournamentMarketGroup:
    return TournamentMarketGroup(
        tournament_id="t1",
        table_id=table_id,
        markets=[
            MarketSyncRecord(market_id=f"m{index}", last_synced_hand=hand, outcomes=_outcomes(*labels))
            for index, hand in enumerate(synced, start=1)
        ],
    )


def _running(**kwargs) -> ResolutionVerdict:
    return ResolutionVerdict(status=VerdictStatus.RUNNING, confidence=0.5, reasoning="2 players", **kwargs)


@pytest.fixture
def deps():
    store = MagicMock()
    client = MagicMock()
    compiler = MagicMock()
    odds_engine = MagicMock()
    compiler.compile.return_value = _running()
    return store, client, compiler, odds_engine


def _orchestrator(deps, test_settings, scheduler=None, clock=None) -> SyncOrchestrator:
    store, client, compiler, odds_engine = deps
    kwargs = {"clock": clock} if clock else {}
    return SyncOrchestrator(
        store=store,
        client=client,
        compiler=compiler,
        odds_engine=odds_engine,
        scheduler=scheduler or FakeScheduler(),
        settings=test_settings,
        **kwargs,
    )


def test_match_outcome_ignores_case_and_whitespace():
    outcomes = _outcomes("Alice", "Bob")

    assert match_outcome(" bob ", outcomes) == "out-bob"
    assert match_outcome("Carol", outcomes) is None


def test_no_new_hands_means_no_writes(deps, test_settings):
    store, client, compiler, odds_engine = deps
    client.find_last_hand.return_value = 4

    summary = _orchestrator(deps, test_settings).sync_tournament(_group())

    assert summary.tournaments_skipped == 1
    store.update_sync_progress.assert_not_called()
    odds_engine.persist_odds.assert_not_called()
    compiler.compile.assert_not_called()
    store.pause_markets.assert_not_called()
    store.propose_winner.assert_not_called()


def test_new_hands_advance_progress_and_refresh_odds(deps, test_settings):
    store, client, compiler, odds_engine = deps
    client.find_last_hand.return_value = 9

    summary = _orchestrator(deps, test_settings).sync_tournament(_group(synced=(4, 6)))

    store.update_sync_progress.assert_called_once_with(["m1", "m2"], 9)
    assert [call.args[0] for call in odds_engine.persist_odds.call_args_list] == ["m1", "m2"]
    compiler.compile.assert_called_once_with("pglTable1", 9)
    assert summary.tournaments_synced == 1
    store.propose_winner.assert_not_called()


def test_group_without_table_id_is_skipped(deps, test_settings):
    _, client, _, _ = deps

    summary = _orchestrator(deps, test_settings).sync_tournament(_group(table_id=None))

    assert summary.tournaments_skipped == 1
    client.find_last_hand.assert_not_called()


def test_paused_verdict_pauses_every_market(deps, test_settings):
    store, client, compiler, _ = deps
    client.find_last_hand.return_value = 5
    compiler.compile.return_value = ResolutionVerdict(
        status=VerdictStatus.RUNNING,
        confidence=0.0,
        reasoning="High Volatility Event: All-In Detected",
        is_paused=True,
    )

    summary = _orchestrator(deps, test_settings).sync_tournament(_group())

    store.pause_markets.assert_called_once_with(["m1", "m2"], "High Volatility Event: All-In Detected")
    store.propose_winner.assert_not_called()
    assert summary.markets_paused == 2


def test_completed_verdict_proposes_matching_outcome(deps, test_settings):
    store, client, compiler, _ = deps
    client.find_last_hand.return_value = 12
    compiler.compile.return_value = ResolutionVerdict(
        status=VerdictStatus.COMPLETED,
        confidence=1.0,
        reasoning="last player standing",
        winner="bob",
        decision_trace="HAND: 12 | WINNER: bob (stack: 500)",
    )

    summary = _orchestrator(deps, test_settings).sync_tournament(_group())

    assert [call.args for call in store.propose_winner.call_args_list] == [
        ("m1", "out-bob", "HAND: 12 | WINNER: bob (stack: 500)"),
        ("m2", "out-bob", "HAND: 12 | WINNER: bob (stack: 500)"),
    ]
    assert summary.markets_proposed == 2


def test_unmatched_winner_leaves_markets_open(deps, test_settings):
    store, client, compiler, _ = deps
    client.find_last_hand.return_value = 12
    compiler.compile.return_value = ResolutionVerdict(
        status=VerdictStatus.COMPLETED, confidence=1.0, reasoning="done", winner="Carol"
    )

    summary = _orchestrator(deps, test_settings).sync_tournament(_group())

    store.propose_winner.assert_not_called()
    assert summary.markets_proposed == 0


def test_odds_failure_for_one_market_does_not_stop_the_rest(deps, test_settings):
    _, client, compiler, odds_engine = deps
    client.find_last_hand.return_value = 6
    odds_engine.persist_odds.side_effect = [RuntimeError("db gone"), []]

    summary = _orchestrator(deps, test_settings).sync_tournament(_group())

    assert odds_engine.persist_odds.call_count == 2
    assert summary.failures == [{"market_id": "m1", "reason": "db gone"}]
    compiler.compile.assert_called_once()


def test_tick_isolates_tournament_failures(deps, test_settings):
    store, client, _, _ = deps
    broken = _group()
    broken.tournament_id = "broken"
    healthy = _group()
    store.list_open_autonomous_markets_by_tournament.return_value = [broken, healthy]
    client.find_last_hand.side_effect = [RuntimeError("timeout"), 9]

    summary = _orchestrator(deps, test_settings).run_tick()

    assert summary.tournaments_checked == 2
    assert summary.tournaments_synced == 1
    assert summary.failures == [{"tournament_id": "broken", "reason": "timeout"}]


def test_deadline_overrun_abandons_tournament(deps, test_settings):
    store, client, compiler, _ = deps
    client.find_last_hand.return_value = 9
    ticks = iter([0.0, 999.0])

    orchestrator = _orchestrator(deps, test_settings, clock=lambda: next(ticks))
    store.list_open_autonomous_markets_by_tournament.return_value = [_group()]

    summary = orchestrator.run_tick()

    assert summary.failures[0]["tournament_id"] == "t1"
    assert "deadline" in summary.failures[0]["reason"]
    store.update_sync_progress.assert_not_called()
    compiler.compile.assert_not_called()


def test_empty_tick_returns_empty_summary(deps, test_settings):
    store, _, _, _ = deps
    store.list_open_autonomous_markets_by_tournament.return_value = []

    assert _orchestrator(deps, test_settings).run_tick().to_dict() == SyncSummary().to_dict()


def test_start_schedules_ticks_and_stop_cancels(deps, test_settings):
    store, _, _, _ = deps
    store.list_open_autonomous_markets_by_tournament.return_value = []
    scheduler = FakeScheduler()
    orchestrator = _orchestrator(deps, test_settings, scheduler=scheduler)

    orchestrator.start()
    orchestrator.start()
    assert len(scheduler.scheduled) == 1
    assert scheduler.scheduled[0][0] == 0

    scheduler.run_next()
    assert store.list_open_autonomous_markets_by_tournament.call_count == 1
    assert scheduler.scheduled[0][0] == test_settings.sync_poll_interval_seconds

    pending = scheduler.scheduled[0]
    orchestrator.stop()
    assert scheduler.cancelled == [pending]
    assert not orchestrator.is_running

    # A callback that fires after stop does nothing.
    scheduler.run_next()
    assert store.list_open_autonomous_markets_by_tournament.call_count == 1


def test_loop_survives_tick_errors(deps, test_settings):
    store, _, _, _ = deps
    store.list_open_autonomous_markets_by_tournament.side_effect = RuntimeError("db down")
    scheduler = FakeScheduler()
    orchestrator = _orchestrator(deps, test_settings, scheduler=scheduler)

    orchestrator.start()
    scheduler.run_next()

    assert orchestrator.is_running
    assert len(scheduler.scheduled) == 1


def test_stop_between_tournaments_abandons_rest_of_tick(deps, test_settings):
    store, client, _, _ = deps
    store.list_open_autonomous_markets_by_tournament.return_value = [_group(), _group()]
    orchestrator = _orchestrator(deps, test_settings)

    def find_last_hand(table_id):
        orchestrator.stop()
        return 4

    client.find_last_hand.side_effect = find_last_hand

    summary = orchestrator.run_tick()

    assert summary.tournaments_checked == 1


def test_threading_scheduler_runs_and_cancels():
    scheduler = ThreadingScheduler()
    fired = threading.Event()
    scheduler.schedule(0, fired.set)
    assert fired.wait(2)

    never = threading.Event()
    handle = scheduler.schedule(60, never.set)
    scheduler.cancel(handle)
    handle.join(2)
    assert not never.is_set()
    scheduler.cancel(None)


def _late_clock():
    # Deadline at 0 + 30, write check at 1, post-compile reading at 999.
    ticks = iter([0.0, 1.0])
    return lambda: next(ticks, 999.0)


def test_deadline_overrun_after_compile_still_proposes_winner(deps, test_settings):
    store, client, compiler, _ = deps
    client.find_last_hand.return_value = 12
    compiler.compile.return_value = ResolutionVerdict(
        status=VerdictStatus.COMPLETED, confidence=1.0, reasoning="done", winner="Bob", decision_trace="HAND: 12"
    )
    store.list_open_autonomous_markets_by_tournament.return_value = [_group(synced=(4,))]

    summary = _orchestrator(deps, test_settings, clock=_late_clock()).run_tick()

    store.update_sync_progress.assert_called_once_with(["m1"], 12)
    store.propose_winner.assert_called_once_with("m1", "out-bob", "HAND: 12")
    assert summary.markets_proposed == 1
    assert summary.failures == []


def test_deadline_overrun_after_compile_still_pauses(deps, test_settings):
    store, client, compiler, _ = deps
    client.find_last_hand.return_value = 12
    compiler.compile.return_value = ResolutionVerdict(
        status=VerdictStatus.RUNNING, confidence=0.0, reasoning="all in", is_paused=True
    )
    store.list_open_autonomous_markets_by_tournament.return_value = [_group()]

    summary = _orchestrator(deps, test_settings, clock=_late_clock()).run_tick()

    store.pause_markets.assert_called_once_with(["m1", "m2"], "all in")
    assert summary.markets_paused == 2


def test_zero_interval_is_honoured(deps, test_settings):
    orchestrator = SyncOrchestrator(
        store=deps[0],
        client=deps[1],
        compiler=deps[2],
        odds_engine=deps[3],
        scheduler=FakeScheduler(),
        interval=0,
        tournament_timeout=0,
        settings=test_settings,
    )

    assert orchestrator.interval == 0
    assert orchestrator.tournament_timeout == 0
    assert _parse_args(["--interval", "0"]).interval == 0.0
    assert _parse_args([]).interval is None
