"""Unit tests for the player Elo formula."""

from __future__ import annotations

import pytest

from domain.ratings.elo.calculator import (
    DEFAULT_PARAMETERS,
    EloParameters,
    calculate_expected_score,
    next_rating,
    round_half_up,
)


def test_elo_parameters_defaults_are_expected_constants() -> None:
    params = EloParameters()
    assert params.initial_rating == 1200
    assert params.winner_k_factor == pytest.approx(35.0)
    assert params.loser_k_factor == pytest.approx(29.0)
    assert params.scale_factor == pytest.approx(400.0)
    assert params.min_rating == 800
    assert params.max_rating == 2400


def test_expected_score_equal_ratings_is_half() -> None:
    assert calculate_expected_score(1200, 1200, 400.0) == pytest.approx(0.5)


def test_expected_scores_sum_to_one() -> None:
    expected_a = calculate_expected_score(1300, 1200, 400.0)
    expected_b = calculate_expected_score(1200, 1300, 400.0)
    assert expected_a + expected_b == pytest.approx(1.0)


def test_even_match_moves_winner_and_loser_asymmetrically() -> None:
    assert next_rating(1200, 1200.0, True) == 1218
    assert next_rating(1200, 1200.0, False) == 1186


def test_round_half_up_never_rounds_to_even() -> None:
    assert round_half_up(1185.5) == 1186
    assert round_half_up(1216.5) == 1217
    assert round_half_up(1217.49) == 1217


def test_rating_is_clamped_to_upper_bound() -> None:
    assert next_rating(2395, 2395.0, True) == 2400
    assert next_rating(2400, 800.0, True) == 2400


def test_rating_is_clamped_to_lower_bound() -> None:
    assert next_rating(805, 805.0, False) == 800
    assert next_rating(800, 2400.0, False) == 800


def test_upset_win_gains_more_than_expected_win() -> None:
    underdog_gain = next_rating(1100, 1300.0, True) - 1100
    favourite_gain = next_rating(1300, 1100.0, True) - 1300
    assert underdog_gain > favourite_gain > 0


def test_custom_k_factors_are_used() -> None:
    params = EloParameters(winner_k_factor=10.0, loser_k_factor=10.0)
    assert next_rating(1200, 1200.0, True, params) == 1205
    assert next_rating(1200, 1200.0, False, params) == 1195
    assert DEFAULT_PARAMETERS.winner_k_factor == pytest.approx(35.0)
