"""players table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class Player(Base):
    """Group roster entry carrying the lifetime rating aggregate."""

    __tablename__ = "players"
    __table_args__ = (
        CheckConstraint("ranking >= 800 AND ranking <= 2400", name="ck_players_ranking"),
        CheckConstraint(
            "matches_played >= 0 AND wins >= 0 AND losses >= 0",
            name="ck_players_counters",
        ),
        Index("idx_players_group", "group_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    group_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    ranking: Mapped[int] = mapped_column(Integer, nullable=False, default=1200)
    matches_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
