from __future__ import annotations

from fastapi import Depends, FastAPI, HTTPException

from . import schemas
from .core.config import settings
from .db import init_db
from .repositories import MarketNotFoundError
from .services.market_store import SqlMarketStore
from .services.odds_engine import OddsEngine, OutcomeNotFoundError

app = FastAPI(title="Poker Market Sync", version="0.1.0", debug=settings.debug)


@app.on_event("startup")
def on_startup() -> None:
    """Create tables when the API boots."""

    init_db()


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


def _odds_engine() -> OddsEngine:
    return OddsEngine(SqlMarketStore(), settings)


@app.get("/markets/{market_id}/odds", response_model=schemas.MarketOdds, tags=["odds"])
def get_market_odds(market_id: str, engine: OddsEngine = Depends(_odds_engine)):
    """Live parimutuel odds for every outcome of a market."""

    try:
        odds = engine.live_odds(market_id)
    except MarketNotFoundError:
        raise HTTPException(status_code=404, detail="Market not found")
    return schemas.MarketOdds(
        market_id=market_id,
        outcomes=[schemas.OutcomeOdds.model_validate(item) for item in odds],
    )


@app.get(
    "/markets/{market_id}/outcomes/{outcome_id}/odds",
    response_model=schemas.LockedOdds,
    tags=["odds"],
)
def lock_outcome_odds(market_id: str, outcome_id: str, engine: OddsEngine = Depends(_odds_engine)):
    """Odds to record on a bet placed on ``outcome_id`` right now."""

    try:
        odds = engine.lock_odds(market_id, outcome_id)
    except MarketNotFoundError:
        raise HTTPException(status_code=404, detail="Market not found")
    except OutcomeNotFoundError:
        raise HTTPException(status_code=404, detail="Outcome not found")
    return schemas.LockedOdds(market_id=market_id, outcome_id=outcome_id, odds=odds)
