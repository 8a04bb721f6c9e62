"""Elo rating modules."""

from domain.ratings.elo.calculator import (
    DEFAULT_PARAMETERS,
    EloParameters,
    calculate_expected_score,
    next_rating,
)
from domain.ratings.elo.config import EloSystemConfig, load_elo_system_config
from domain.ratings.elo.replay import MatchReplayer, ReplayResult, apply_match, replay_matches

__all__ = [
    "DEFAULT_PARAMETERS",
    "EloParameters",
    "EloSystemConfig",
    "MatchReplayer",
    "ReplayResult",
    "apply_match",
    "calculate_expected_score",
    "load_elo_system_config",
    "next_rating",
    "replay_matches",
]
