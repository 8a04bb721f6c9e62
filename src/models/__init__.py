"""ORM models."""

from models.base import Base
from models.match import Match
from models.player import Player
from models.season import Season
from models.stats import MatchRating, PlayerSeasonStats

__all__ = [
    "Base",
    "Match",
    "MatchRating",
    "Player",
    "PlayerSeasonStats",
    "Season",
]
