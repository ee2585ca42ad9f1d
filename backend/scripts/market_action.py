"""Operator actions on a proposed or paused market: approve, reject, resume."""

import argparse

from loguru import logger

from app.db import init_db
from app.repositories import InvalidMarketTransitionError, MarketNotFoundError
from app.services.market_store import SqlMarketStore

ACTIONS = {"approve": "approved", "reject": "rejected", "resume": "resumed"}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apply a lifecycle action to a betting market")
    parser.add_argument("action", choices=sorted(ACTIONS))
    parser.add_argument("market_id")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    init_db()
    store = SqlMarketStore()
    handler = {
        "approve": store.approve_proposal,
        "reject": store.reject_proposal,
        "resume": store.resume_market,
    }[args.action]
    try:
        handler(args.market_id)
    except (MarketNotFoundError, InvalidMarketTransitionError) as exc:
        logger.error("Cannot {} market {}: {}", args.action, args.market_id, exc)
        return 1
    logger.info("Market {} {}", args.market_id, ACTIONS[args.action])
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
