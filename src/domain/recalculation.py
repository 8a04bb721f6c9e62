"""Full-scope recalculation after historical match edits and deletions."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from domain.common import (
    MatchRecord,
    PlayerRatingState,
    ReplayScope,
    SeasonRecord,
    TeamAssignment,
)
from domain.errors import ValidationError
from domain.locks import GroupLocks
from domain.ratings.elo.calculator import DEFAULT_PARAMETERS, EloParameters
from domain.ratings.elo.replay import ReplayResult, replay_matches, validate_result
from repositories.store import RatingStore

logger = logging.getLogger(__name__)


def require_season(store: RatingStore, group_id: str, season_id: str) -> SeasonRecord:
    """Load a season and check it belongs to ``group_id``."""
    season = store.get_season(season_id)
    if season is None:
        raise ValidationError(f"season_id={season_id} not found")
    if season.group_id != group_id:
        raise ValidationError(
            f"season_id={season_id} belongs to group {season.group_id}, not {group_id}"
        )
    return season


def season_write_targets(
    store: RatingStore, season_id: str, states: dict[str, PlayerRatingState], roster_ids: set[str]
) -> list[PlayerRatingState]:
    """Season aggregates to persist: players who played, plus any stale stored row to reset."""
    targets: list[PlayerRatingState] = []
    for player_id, state in states.items():
        if player_id not in roster_ids:
            continue
        if state.matches_played > 0 or store.get_season_aggregate(player_id, season_id) is not None:
            targets.append(state)
    return targets


@dataclass(frozen=True)
class RecalculationResult:
    group_id: str
    season_id: str | None
    group_replay: ReplayResult
    season_replay: ReplayResult | None
    players_written: int
    season_stats_written: int
    snapshots_written: int


class FullRecalculator:
    """Reset and replay a group's entire history, then rewrite every derived value.

    Every match in the group is replayed, not only those after the changed one:
    an edit can move a match in the ordering, which changes the state before it.
    The first failed write aborts with ``PersistenceError``; rerunning is safe
    because every value is recomputed from baseline.
    """

    def __init__(
        self,
        store: RatingStore,
        locks: GroupLocks,
        *,
        params: EloParameters = DEFAULT_PARAMETERS,
    ) -> None:
        self.store = store
        self.locks = locks
        self.params = params

    def recalculate(self, group_id: str, season_id: str | None = None) -> RecalculationResult:
        with self.locks.hold(group_id):
            if season_id is not None:
                require_season(self.store, group_id, season_id)

            roster = [player.id for player in self.store.list_players(group_id)]
            matches = self.store.list_matches(group_id)
            logger.info(
                "recalculating group_id=%s season_id=%s players=%d matches=%d",
                group_id,
                season_id,
                len(roster),
                len(matches),
            )

            group_replay = replay_matches(
                matches, ReplayScope(group_id), roster=roster, params=self.params
            )
            season_replay = None
            if season_id is not None:
                season_replay = replay_matches(
                    matches, ReplayScope(group_id, season_id), roster=roster, params=self.params
                )

            roster_ids = set(roster)
            players_written = 0
            for player_id, state in group_replay.final_states.items():
                if player_id not in roster_ids:
                    logger.warning("skipping aggregate for player_id=%s not in group roster", player_id)
                    continue
                self.store.write_player_aggregate(player_id, state)
                players_written += 1

            snapshots_written = 0
            for match_id, snapshot in group_replay.snapshots.items():
                self.store.write_match_snapshot(match_id, snapshot)
                snapshots_written += 1

            season_stats_written = 0
            if season_replay is not None and season_id is not None:
                for state in season_write_targets(
                    self.store, season_id, season_replay.final_states, roster_ids
                ):
                    self.store.write_season_aggregate(state.player_id, season_id, state)
                    season_stats_written += 1
                for match_id, snapshot in season_replay.snapshots.items():
                    self.store.write_match_snapshot(match_id, snapshot, season_id=season_id)
                    snapshots_written += 1

            logger.info(
                "recalculated group_id=%s players=%d season_stats=%d snapshots=%d",
                group_id,
                players_written,
                season_stats_written,
                snapshots_written,
            )
            return RecalculationResult(
                group_id=group_id,
                season_id=season_id,
                group_replay=group_replay,
                season_replay=season_replay,
                players_written=players_written,
                season_stats_written=season_stats_written,
                snapshots_written=snapshots_written,
            )


class MatchEditor:
    """Edit or delete a recorded match and recalculate everything it influenced."""

    def __init__(self, store: RatingStore, recalculator: FullRecalculator) -> None:
        self.store = store
        self.recalculator = recalculator

    def _get_match(self, match_id: str) -> MatchRecord:
        match = self.store.get_match(match_id)
        if match is None:
            raise ValidationError(f"match_id={match_id} not found")
        return match

    def edit_match(
        self,
        match_id: str,
        teams: TeamAssignment,
        team1_score: int,
        team2_score: int,
    ) -> RecalculationResult:
        validate_result(teams, team1_score, team2_score)
        match = self._get_match(match_id)

        with self.recalculator.locks.hold(match.group_id):
            for player_id in teams.player_ids:
                player = self.store.get_player(player_id)
                if player is None or player.group_id != match.group_id:
                    raise ValidationError(
                        f"player_id={player_id} is not a member of group {match.group_id}"
                    )
            self.store.update_match(match_id, teams, team1_score, team2_score)
            logger.info("edited match_id=%s score=%d-%d", match_id, team1_score, team2_score)
            return self.recalculator.recalculate(match.group_id, match.season_id)

    def delete_match(self, match_id: str) -> RecalculationResult:
        match = self._get_match(match_id)

        with self.recalculator.locks.hold(match.group_id):
            self.store.delete_match(match_id)
            logger.info("deleted match_id=%s group_id=%s", match_id, match.group_id)
            return self.recalculator.recalculate(match.group_id, match.season_id)


__all__ = ["FullRecalculator", "MatchEditor", "RecalculationResult", "require_season", "season_write_targets"]
