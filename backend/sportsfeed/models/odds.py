from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from sportsfeed.database import Base

MARKET_TYPES = ("moneyline", "spread", "total")


class Odds(Base):
    __tablename__ = "odds"
    __table_args__ = (
        UniqueConstraint("game_id", "sportsbook", "market_type", name="uq_odds_game_book_market"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id", ondelete="CASCADE"), index=True)
    sportsbook: Mapped[str] = mapped_column(String(64), index=True)
    market_type: Mapped[str] = mapped_column(String(16), index=True)
    # moneyline and spread prices (american)
    home_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    away_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    home_spread: Mapped[float | None] = mapped_column(Float, nullable=True)
    away_spread: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_over: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_under: Mapped[float | None] = mapped_column(Float, nullable=True)
    over_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    under_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_update: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
