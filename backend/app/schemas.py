from pydantic import BaseModel


class OutcomeOdds(BaseModel):
    outcome_id: str
    label: str
    odds: float
    total_bets: float
    bet_count: int

    model_config = {"from_attributes": True}


class MarketOdds(BaseModel):
    market_id: str
    outcomes: list[OutcomeOdds]


class LockedOdds(BaseModel):
    market_id: str
    outcome_id: str
    odds: float
