"""Player-level Elo formula with asymmetric winner/loser K-factors."""

from __future__ import annotations

from dataclasses import dataclass
from math import floor

from domain.common import INITIAL_RATING


@dataclass(frozen=True)
class EloParameters:
    initial_rating: int = INITIAL_RATING
    winner_k_factor: float = 35.0
    loser_k_factor: float = 29.0
    scale_factor: float = 400.0
    min_rating: int = 800
    max_rating: int = 2400


DEFAULT_PARAMETERS = EloParameters()


def calculate_expected_score(rating: float, opponent_rating: float, scale_factor: float) -> float:
    """Compute the Elo expected score for one side."""
    return 1.0 / (1.0 + 10.0 ** ((opponent_rating - rating) / scale_factor))


def round_half_up(value: float) -> int:
    # 1185.5 -> 1186, never banker's rounding
    return int(floor(value + 0.5))


def next_rating(
    player_rating: int,
    opponent_team_avg_rating: float,
    won: bool,
    params: EloParameters = DEFAULT_PARAMETERS,
) -> int:
    """Return a player's rating after one match against a team of the given average.

    Winners move with ``winner_k_factor`` and losers with ``loser_k_factor``;
    the larger winner K makes every completed match add a few points to the pool.
    The result is rounded half-up and clamped to ``[min_rating, max_rating]``.
    """
    k_factor = params.winner_k_factor if won else params.loser_k_factor
    expected = calculate_expected_score(
        rating=player_rating,
        opponent_rating=opponent_team_avg_rating,
        scale_factor=params.scale_factor,
    )
    actual = 1.0 if won else 0.0
    raw = player_rating + k_factor * (actual - expected)
    return max(params.min_rating, min(params.max_rating, round_half_up(raw)))


__all__ = [
    "DEFAULT_PARAMETERS",
    "EloParameters",
    "calculate_expected_score",
    "next_rating",
    "round_half_up",
]
