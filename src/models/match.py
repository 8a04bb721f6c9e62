"""matches table model."""

from __future__ import annotations

from datetime import date, datetime, time

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String, Time
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class Match(Base):
    """A recorded 2v2 result; rating snapshots live in ``match_ratings``."""

    __tablename__ = "matches"
    __table_args__ = (
        CheckConstraint(
            "team1_score >= 0 AND team2_score >= 0 AND team1_score <> team2_score",
            name="ck_matches_scores",
        ),
        Index(
            "idx_matches_group_order",
            "group_id",
            "match_date",
            "match_time",
            "created_at",
        ),
        Index("idx_matches_season", "season_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    group_id: Mapped[str] = mapped_column(String(36), nullable=False)
    season_id: Mapped[str | None] = mapped_column(ForeignKey("seasons.id"), nullable=True)
    team1_player1_id: Mapped[str] = mapped_column(ForeignKey("players.id"), nullable=False)
    team1_player2_id: Mapped[str] = mapped_column(ForeignKey("players.id"), nullable=False)
    team2_player1_id: Mapped[str] = mapped_column(ForeignKey("players.id"), nullable=False)
    team2_player2_id: Mapped[str] = mapped_column(ForeignKey("players.id"), nullable=False)
    team1_score: Mapped[int] = mapped_column(Integer, nullable=False)
    team2_score: Mapped[int] = mapped_column(Integer, nullable=False)
    match_date: Mapped[date] = mapped_column(Date, nullable=False)
    match_time: Mapped[time] = mapped_column(Time, nullable=False)
    recorded_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
