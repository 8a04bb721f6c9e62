"""player_season_stats and match_ratings table models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class PlayerSeasonStats(Base):
    """Season-relative aggregate for one player."""

    __tablename__ = "player_season_stats"
    __table_args__ = (
        UniqueConstraint("player_id", "season_id", name="uq_player_season_stats_player_season"),
        CheckConstraint(
            "ranking >= 800 AND ranking <= 2400",
            name="ck_player_season_stats_ranking",
        ),
        Index("idx_player_season_stats_season", "season_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(ForeignKey("players.id"), nullable=False)
    season_id: Mapped[str] = mapped_column(ForeignKey("seasons.id"), nullable=False)
    ranking: Mapped[int] = mapped_column(Integer, nullable=False, default=1200)
    matches_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    goals_for: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    goals_against: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )


class MatchRating(Base):
    """Pre/post rating of one player in one match (one row per match, player, scope).

    ``season_id`` is NULL for the lifetime snapshot and set for the
    season-relative one.
    """

    __tablename__ = "match_ratings"
    __table_args__ = (
        UniqueConstraint("match_id", "player_id", "season_id", name="uq_match_ratings_scope"),
        CheckConstraint("seat >= 1 AND seat <= 4", name="ck_match_ratings_seat"),
        Index("idx_match_ratings_match", "match_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    match_id: Mapped[str] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[str] = mapped_column(String(36), nullable=False)
    season_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    seat: Mapped[int] = mapped_column(Integer, nullable=False)
    pre_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    post_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
