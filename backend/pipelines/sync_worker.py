"""Polling loop that keeps autonomous poker markets in step with their tables."""

from __future__ import annotations

import argparse
import json
import sys
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Iterable

from loguru import logger

from app.core.config import Settings, get_settings
from app.db import init_db
from app.domain import OutcomeSnapshot, ResolutionVerdict
from app.repositories import TournamentMarketGroup
from app.services.market_store import MarketStore, SqlMarketStore
from app.services.odds_engine import OddsEngine
from ingestion.client import PokerNowClient

from .resolution_compiler import ResolutionCompiler
from .scheduler import Scheduler, ThreadingScheduler


class TournamentSyncTimeout(TimeoutError):
    """Raised when a tournament overruns its per-tick deadline."""


@dataclass(slots=True)
class SyncSummary:
    tournaments_checked: int = 0
    tournaments_skipped: int = 0
    tournaments_synced: int = 0
    markets_paused: int = 0
    markets_proposed: int = 0
    failures: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def match_outcome(winner: str, outcomes: Iterable[OutcomeSnapshot]) -> str | None:
    """Return the id of the outcome whose label matches ``winner`` ignoring case."""

    target = winner.strip().casefold()
    for outcome in outcomes:
        if outcome.label.strip().casefold() == target:
            return outcome.outcome_id
    return None


class SyncOrchestrator:
    """Self-rescheduling sync loop.

    Each tick lists active tournaments with open autonomous markets and, one
    tournament at a time, advances sync progress, refreshes odds, and applies
    the resolution verdict. The next tick is scheduled ``interval`` seconds
    after the previous one finishes. Only one orchestrator may run against a
    given store: the read and write of ``last_synced_hand`` are not locked.
    """

    def __init__(
        self,
        *,
        store: MarketStore,
        client: PokerNowClient,
        compiler: ResolutionCompiler,
        odds_engine: OddsEngine,
        scheduler: Scheduler,
        interval: float | None = None,
        tournament_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._store = store
        self._client = client
        self._compiler = compiler
        self._odds = odds_engine
        self._scheduler = scheduler
        self._clock = clock
        self.interval = settings.sync_poll_interval_seconds if interval is None else interval
        self.tournament_timeout = (
            settings.sync_tournament_timeout_seconds if tournament_timeout is None else tournament_timeout
        )

        self._lock = threading.Lock()
        self._running = False
        self._stop_requested = False
        self._handle: Any = None

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._stop_requested = False
            self._handle = self._scheduler.schedule(0, self._loop)
        logger.info("Sync worker started (interval={}s)", self.interval)

    def stop(self) -> None:
        with self._lock:
            self._running = False
            self._stop_requested = True
            self._scheduler.cancel(self._handle)
            self._handle = None
        logger.info("Sync worker stopped")

    def _loop(self) -> None:
        if not self._running:
            return
        try:
            self.run_tick()
        except Exception:
            logger.exception("Error in sync worker loop")

        with self._lock:
            if self._running:
                self._handle = self._scheduler.schedule(self.interval, self._loop)

    # ------------------------------------------------------------------
    # Tick

    def run_tick(self) -> SyncSummary:
        summary = SyncSummary()
        groups = self._store.list_open_autonomous_markets_by_tournament()
        if not groups:
            return summary

        logger.info("Processing {} active autonomous tournaments", len(groups))
        for group in groups:
            if self._stop_requested:
                logger.info("Stop requested; abandoning remaining tournaments this tick")
                break
            summary.tournaments_checked += 1
            try:
                self.sync_tournament(group, summary)
            except Exception as exc:
                logger.exception("Failed to sync tournament {}", group.tournament_id)
                summary.failures.append({"tournament_id": group.tournament_id, "reason": str(exc)})
        return summary

    def _check_deadline(self, deadline: float, stage: str) -> None:
        if self._stop_requested:
            raise TournamentSyncTimeout(f"stop requested before {stage}")
        if self._clock() > deadline:
            raise TournamentSyncTimeout(f"deadline exceeded before {stage}")

    def sync_tournament(self, group: TournamentMarketGroup, summary: SyncSummary | None = None) -> SyncSummary:
        summary = summary if summary is not None else SyncSummary()
        if not group.table_id:
            logger.warning("Tournament {} has no table id; skipping", group.tournament_id)
            summary.tournaments_skipped += 1
            return summary

        deadline = self._clock() + self.tournament_timeout
        min_synced = group.min_synced_hand
        latest = self._client.find_last_hand(group.table_id)
        if latest <= min_synced:
            summary.tournaments_skipped += 1
            return summary

        logger.info(
            "Tournament {}: found new hands (current={}, synced={})",
            group.tournament_id,
            latest,
            min_synced,
        )
        self._check_deadline(deadline, "sync progress write")
        self._store.update_sync_progress(group.market_ids, latest)

        for market_id in group.market_ids:
            try:
                self._odds.persist_odds(market_id)
            except Exception as exc:
                logger.exception("Failed to update odds for market {}", market_id)
                summary.failures.append({"market_id": market_id, "reason": str(exc)})
        summary.tournaments_synced += 1

        verdict = self._compiler.compile(group.table_id, latest)
        if self._clock() > deadline:
            # Progress is already written, so the verdict must still be applied.
            logger.warning(
                "Tournament {} overran its {}s deadline; applying verdict anyway",
                group.tournament_id,
                self.tournament_timeout,
            )
        self._apply_verdict(group, verdict, summary)
        return summary

    def _apply_verdict(
        self, group: TournamentMarketGroup, verdict: ResolutionVerdict, summary: SyncSummary
    ) -> None:
        if verdict.is_paused:
            self._store.pause_markets(group.market_ids, verdict.reasoning)
            summary.markets_paused += len(group.market_ids)
            logger.warning(
                "Paused {} markets for tournament {}: {}",
                len(group.market_ids),
                group.tournament_id,
                verdict.reasoning,
            )
            return

        if not verdict.is_completed or not verdict.winner:
            return

        for market in group.markets:
            outcome_id = match_outcome(verdict.winner, market.outcomes)
            if outcome_id is None:
                logger.warning(
                    "Winner {!r} matches no outcome of market {}; leaving it open",
                    verdict.winner,
                    market.market_id,
                )
                continue
            try:
                self._store.propose_winner(market.market_id, outcome_id, verdict.decision_trace)
            except Exception as exc:
                logger.exception("Failed to propose winner for market {}", market.market_id)
                summary.failures.append({"market_id": market.market_id, "reason": str(exc)})
                continue
            summary.markets_proposed += 1
            logger.info(
                "Proposed {} as winner of market {} (outcome {})",
                verdict.winner,
                market.market_id,
                outcome_id,
            )


def build_orchestrator(settings: Settings | None = None) -> tuple[SyncOrchestrator, PokerNowClient]:
    settings = settings or get_settings()
    store = SqlMarketStore()
    client = PokerNowClient(settings=settings)
    orchestrator = SyncOrchestrator(
        store=store,
        client=client,
        compiler=ResolutionCompiler(client),
        odds_engine=OddsEngine(store, settings),
        scheduler=ThreadingScheduler(),
        settings=settings,
    )
    return orchestrator, client


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Keep autonomous poker betting markets in sync with their PokerNow tables",
    )
    parser.add_argument("--once", action="store_true", help="Run a single tick and exit")
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Override the delay in seconds between ticks",
    )
    parser.add_argument("--log-level", default="INFO", help="Loguru level for stderr output")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logger.remove()
    logger.add(sys.stderr, level=args.log_level.upper())

    settings = get_settings()
    init_db()
    orchestrator, client = build_orchestrator(settings)
    if args.interval is not None:
        orchestrator.interval = args.interval

    try:
        if args.once:
            summary = orchestrator.run_tick()
            print(json.dumps(summary.to_dict(), indent=2))
            return

        orchestrator.start()
        stopped = threading.Event()
        try:
            while not stopped.wait(1.0):
                pass
        except KeyboardInterrupt:
            logger.info("Interrupted; shutting down")
        finally:
            orchestrator.stop()
    finally:
        client.close()


if __name__ == "__main__":
    main()
