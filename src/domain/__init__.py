"""Foosball rating domain modules."""

from domain.common import MatchRecord, PlayerRatingState, RatingSnapshot, ReplayScope, TeamAssignment

__all__ = ["MatchRecord", "PlayerRatingState", "RatingSnapshot", "ReplayScope", "TeamAssignment"]
