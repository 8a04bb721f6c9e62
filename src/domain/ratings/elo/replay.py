"""Deterministic replay of a group's match history into player ratings."""

from __future__ import annotations

from collections.abc import Iterable, MutableMapping
from dataclasses import dataclass, field

from domain.common import (
    MatchRecord,
    PlayerRatingState,
    RatingSnapshot,
    ReplayScope,
    SnapshotEntry,
    TeamAssignment,
)
from domain.errors import ValidationError
from domain.ordering import order_matches
from domain.ratings.elo.calculator import DEFAULT_PARAMETERS, EloParameters, next_rating


@dataclass(frozen=True)
class MatchReplayLine:
    """One folded match, kept for operator reports."""

    index: int
    match: MatchRecord
    snapshot: RatingSnapshot


@dataclass
class ReplayResult:
    scope: ReplayScope
    final_states: dict[str, PlayerRatingState]
    snapshots: dict[str, RatingSnapshot]
    lines: list[MatchReplayLine] = field(default_factory=list)

    @property
    def processed_matches(self) -> int:
        return len(self.snapshots)


def validate_result(teams: TeamAssignment, team1_score: int, team2_score: int) -> None:
    """Reject malformed match results before any rating is touched."""
    player_ids = teams.player_ids
    if len(set(player_ids)) != len(player_ids):
        raise ValidationError(f"all four players must be different, got {player_ids}")
    if team1_score < 0 or team2_score < 0:
        raise ValidationError(f"scores cannot be negative ({team1_score}-{team2_score})")
    if team1_score == team2_score:
        raise ValidationError(f"tied score {team1_score}-{team2_score} is not a valid result")


def apply_match(
    states: MutableMapping[str, PlayerRatingState],
    teams: TeamAssignment,
    team1_score: int,
    team2_score: int,
    *,
    track_goals: bool,
    params: EloParameters = DEFAULT_PARAMETERS,
) -> RatingSnapshot:
    """Fold one match into ``states`` in place and return its rating snapshot.

    This is the only implementation of a replay step; full replays and the
    live single-match recorder both go through it.
    """
    validate_result(teams, team1_score, team2_score)

    for player_id in teams.player_ids:
        if player_id not in states:
            states[player_id] = PlayerRatingState(player_id=player_id, rating=params.initial_rating)

    pre = {player_id: states[player_id].rating for player_id in teams.player_ids}
    team1_avg = (pre[teams.team1[0]] + pre[teams.team1[1]]) / 2.0
    team2_avg = (pre[teams.team2[0]] + pre[teams.team2[1]]) / 2.0
    team1_won = team1_score > team2_score

    post: dict[str, int] = {}
    for player_id in teams.team1:
        post[player_id] = next_rating(pre[player_id], team2_avg, team1_won, params)
    for player_id in teams.team2:
        post[player_id] = next_rating(pre[player_id], team1_avg, not team1_won, params)

    for side, own_score, other_score, won in (
        (teams.team1, team1_score, team2_score, team1_won),
        (teams.team2, team2_score, team1_score, not team1_won),
    ):
        for player_id in side:
            state = states[player_id]
            state.rating = post[player_id]
            state.matches_played += 1
            if won:
                state.wins += 1
            else:
                state.losses += 1
            if track_goals:
                state.goals_for += own_score
                state.goals_against += other_score

    def _entry(player_id: str) -> SnapshotEntry:
        return SnapshotEntry(player_id=player_id, pre_rating=pre[player_id], post_rating=post[player_id])

    return RatingSnapshot(
        team1=(_entry(teams.team1[0]), _entry(teams.team1[1])),
        team2=(_entry(teams.team2[0]), _entry(teams.team2[1])),
    )


class MatchReplayer:
    """Stateful match-by-match replayer for one scope, always starting at baseline."""

    def __init__(
        self,
        scope: ReplayScope,
        params: EloParameters = DEFAULT_PARAMETERS,
        *,
        roster: Iterable[str] = (),
    ) -> None:
        self.scope = scope
        self.params = params
        self._states: dict[str, PlayerRatingState] = {
            player_id: PlayerRatingState(player_id=player_id, rating=params.initial_rating)
            for player_id in roster
        }

    def get_state(self, player_id: str) -> PlayerRatingState:
        state = self._states.get(player_id)
        if state is None:
            return PlayerRatingState(player_id=player_id, rating=self.params.initial_rating)
        return state.copy()

    def tracked_player_count(self) -> int:
        return len(self._states)

    def states(self) -> dict[str, PlayerRatingState]:
        return {player_id: state.copy() for player_id, state in self._states.items()}

    def in_scope(self, match: MatchRecord) -> bool:
        if match.group_id != self.scope.group_id:
            return False
        return not self.scope.is_season or match.season_id == self.scope.season_id

    def process_match(self, match: MatchRecord) -> RatingSnapshot:
        if not self.in_scope(match):
            raise ValidationError(f"match_id={match.id} is outside replay scope ({self.scope.label()})")
        try:
            return apply_match(
                self._states,
                match.teams,
                match.team1_score,
                match.team2_score,
                track_goals=self.scope.is_season,
                params=self.params,
            )
        except ValidationError as exc:
            raise ValidationError(f"match_id={match.id}: {exc}") from exc


def replay_matches(
    matches: Iterable[MatchRecord],
    scope: ReplayScope,
    *,
    roster: Iterable[str] = (),
    params: EloParameters = DEFAULT_PARAMETERS,
) -> ReplayResult:
    """Reset every player to baseline and fold the scope's matches in canonical order."""
    replayer = MatchReplayer(scope, params, roster=roster)
    ordered = order_matches(match for match in matches if replayer.in_scope(match))

    snapshots: dict[str, RatingSnapshot] = {}
    lines: list[MatchReplayLine] = []
    for index, match in enumerate(ordered, start=1):
        snapshot = replayer.process_match(match)
        snapshots[match.id] = snapshot
        lines.append(MatchReplayLine(index=index, match=match, snapshot=snapshot))

    return ReplayResult(
        scope=scope,
        final_states=replayer.states(),
        snapshots=snapshots,
        lines=lines,
    )


__all__ = [
    "MatchReplayLine",
    "MatchReplayer",
    "ReplayResult",
    "apply_match",
    "replay_matches",
    "validate_result",
]
