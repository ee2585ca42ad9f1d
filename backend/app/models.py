from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


class TournamentStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class MarketStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    SETTLED = "SETTLED"


class ResolutionStatus(str, Enum):
    NONE = "NONE"
    PROPOSED = "PROPOSED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Tournament(Base):
    __tablename__ = "tournaments"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=TournamentStatus.PENDING.value
    )
    table_id: Mapped[str | None] = mapped_column(String, nullable=True)
    lobby_url: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    betting_markets: Mapped[list["BettingMarket"]] = relationship(
        "BettingMarket", back_populates="tournament", cascade="all, delete-orphan"
    )


class BettingMarket(Base):
    __tablename__ = "betting_markets"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    tournament_id: Mapped[str] = mapped_column(String, ForeignKey("tournaments.id"), nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False, default="")
    status: Mapped[str] = mapped_column(String, nullable=False, default=MarketStatus.OPEN.value)
    resolution_status: Mapped[str] = mapped_column(
        String, nullable=False, default=ResolutionStatus.NONE.value
    )
    is_autonomous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    suspension_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_synced_hand: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pool_pre_seed: Mapped[float] = mapped_column(Numeric(18, 4), nullable=False, default=0)
    total_pool: Mapped[float] = mapped_column(Numeric(18, 4), nullable=False, default=0)
    bookmaking_fee: Mapped[float] = mapped_column(Numeric(6, 4), nullable=False, default=0)
    ai_proposed_winner_id: Mapped[str | None] = mapped_column(String, nullable=True)
    winning_outcome_id: Mapped[str | None] = mapped_column(String, nullable=True)
    decision_trace: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    tournament: Mapped[Tournament] = relationship("Tournament", back_populates="betting_markets")
    outcomes: Mapped[list["BettingOutcome"]] = relationship(
        "BettingOutcome",
        back_populates="market",
        cascade="all, delete-orphan",
        order_by="BettingOutcome.id",
    )


class BettingOutcome(Base):
    __tablename__ = "betting_outcomes"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    market_id: Mapped[str] = mapped_column(String, ForeignKey("betting_markets.id"), nullable=False)
    label: Mapped[str] = mapped_column(String, nullable=False)
    total_bets: Mapped[float] = mapped_column(Numeric(18, 4), nullable=False, default=0)
    bet_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_odds: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False, default=1.01)

    market: Mapped[BettingMarket] = relationship("BettingMarket", back_populates="outcomes")
