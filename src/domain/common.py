"""Shared types for the rating replay core."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time

INITIAL_RATING = 1200


@dataclass(frozen=True)
class ReplayScope:
    """Replay boundary: a whole group (lifetime) or one season of a group."""

    group_id: str
    season_id: str | None = None

    @property
    def is_season(self) -> bool:
        return self.season_id is not None

    def label(self) -> str:
        if self.season_id is None:
            return f"group={self.group_id}"
        return f"group={self.group_id} season={self.season_id}"


@dataclass(frozen=True)
class TeamAssignment:
    """Two teams of two players, in seat order."""

    team1: tuple[str, str]
    team2: tuple[str, str]

    @property
    def player_ids(self) -> tuple[str, str, str, str]:
        return (self.team1[0], self.team1[1], self.team2[0], self.team2[1])


@dataclass
class PlayerRatingState:
    """Mutable per-scope aggregate for one player."""

    player_id: str
    rating: int = INITIAL_RATING
    matches_played: int = 0
    wins: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def copy(self) -> PlayerRatingState:
        return PlayerRatingState(
            player_id=self.player_id,
            rating=self.rating,
            matches_played=self.matches_played,
            wins=self.wins,
            losses=self.losses,
            goals_for=self.goals_for,
            goals_against=self.goals_against,
        )


@dataclass(frozen=True)
class SnapshotEntry:
    player_id: str
    pre_rating: int
    post_rating: int

    @property
    def delta(self) -> int:
        return self.post_rating - self.pre_rating


@dataclass(frozen=True)
class RatingSnapshot:
    """Pre/post ratings of the four participants of one replayed match."""

    team1: tuple[SnapshotEntry, SnapshotEntry]
    team2: tuple[SnapshotEntry, SnapshotEntry]

    @property
    def entries(self) -> tuple[SnapshotEntry, SnapshotEntry, SnapshotEntry, SnapshotEntry]:
        return (self.team1[0], self.team1[1], self.team2[0], self.team2[1])

    def for_player(self, player_id: str) -> SnapshotEntry:
        for entry in self.entries:
            if entry.player_id == player_id:
                return entry
        raise KeyError(player_id)


@dataclass(frozen=True)
class PlayerRecord:
    """Roster entry plus its stored lifetime aggregate."""

    id: str
    group_id: str
    name: str
    rating: int = INITIAL_RATING
    matches_played: int = 0
    wins: int = 0
    losses: int = 0

    def to_state(self) -> PlayerRatingState:
        return PlayerRatingState(
            player_id=self.id,
            rating=self.rating,
            matches_played=self.matches_played,
            wins=self.wins,
            losses=self.losses,
        )


@dataclass(frozen=True)
class SeasonRecord:
    id: str
    group_id: str
    name: str
    start_date: date
    end_date: date | None = None


@dataclass(frozen=True)
class NewMatch:
    """Match payload before the store assigns it an id."""

    group_id: str
    season_id: str | None
    teams: TeamAssignment
    team1_score: int
    team2_score: int
    match_date: date
    match_time: time
    created_at: datetime
    recorded_by: str | None = None
    snapshot: RatingSnapshot | None = None
    season_snapshot: RatingSnapshot | None = None


@dataclass(frozen=True)
class MatchRecord:
    """Stored match; snapshots are replay outputs and may be overwritten."""

    id: str
    group_id: str
    season_id: str | None
    teams: TeamAssignment
    team1_score: int
    team2_score: int
    match_date: date
    match_time: time
    created_at: datetime
    recorded_by: str | None = None
    snapshot: RatingSnapshot | None = field(default=None, compare=False)
    season_snapshot: RatingSnapshot | None = field(default=None, compare=False)

    @property
    def score(self) -> str:
        return f"{self.team1_score}-{self.team2_score}"


__all__ = [
    "INITIAL_RATING",
    "MatchRecord",
    "NewMatch",
    "PlayerRatingState",
    "PlayerRecord",
    "RatingSnapshot",
    "ReplayScope",
    "SeasonRecord",
    "SnapshotEntry",
    "TeamAssignment",
]
