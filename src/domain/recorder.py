"""Live single-match recording on top of stored player state."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
import logging

from domain.common import (
    MatchRecord,
    NewMatch,
    PlayerRatingState,
    PlayerRecord,
    ReplayScope,
    TeamAssignment,
)
from domain.errors import PersistenceError, ValidationError
from domain.locks import GroupLocks
from domain.ordering import sorts_after
from domain.ratings.elo.calculator import DEFAULT_PARAMETERS, EloParameters
from domain.ratings.elo.replay import apply_match, replay_matches, validate_result
from domain.recalculation import FullRecalculator, require_season
from repositories.store import RatingStore

logger = logging.getLogger(__name__)

_PENDING_MATCH_ID = "pending"


def utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class IncrementalRecorder:
    """Record one new match by folding it onto the stored aggregates.

    Folding onto stored values is only equivalent to a full replay when the new
    match is the newest in the group; a backdated match falls back to a full
    recalculation.
    """

    def __init__(
        self,
        store: RatingStore,
        locks: GroupLocks,
        *,
        params: EloParameters = DEFAULT_PARAMETERS,
        recalculator: FullRecalculator | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.locks = locks
        self.params = params
        self.recalculator = recalculator or FullRecalculator(store, locks, params=params)
        self.clock = clock

    def record(
        self,
        scope: ReplayScope,
        teams: TeamAssignment,
        team1_score: int,
        team2_score: int,
        *,
        recorded_by: str | None = None,
        played_at: datetime | None = None,
    ) -> MatchRecord:
        validate_result(teams, team1_score, team2_score)

        with self.locks.hold(scope.group_id):
            players = self._load_players(scope.group_id, teams)
            if scope.season_id is not None:
                require_season(self.store, scope.group_id, scope.season_id)

            created_at = self.clock()
            played_at = played_at or created_at
            new_match = NewMatch(
                group_id=scope.group_id,
                season_id=scope.season_id,
                teams=teams,
                team1_score=team1_score,
                team2_score=team2_score,
                match_date=played_at.date(),
                match_time=played_at.time().replace(microsecond=0),
                created_at=created_at,
                recorded_by=recorded_by,
            )

            existing = self.store.list_matches(scope.group_id)
            key = (new_match.match_date, new_match.match_time, new_match.created_at)
            if not sorts_after(key, existing):
                return self._record_backdated(new_match, existing)

            lifetime_states = {player.id: player.to_state() for player in players}
            snapshot = apply_match(
                lifetime_states,
                teams,
                team1_score,
                team2_score,
                track_goals=False,
                params=self.params,
            )

            season_states: dict[str, PlayerRatingState] = {}
            season_snapshot = None
            if scope.season_id is not None:
                season_states = self._load_season_states(scope.season_id, teams)
                season_snapshot = apply_match(
                    season_states,
                    teams,
                    team1_score,
                    team2_score,
                    track_goals=True,
                    params=self.params,
                )

            # Aggregates first: a failure here must leave no orphaned match behind, and
            # any aggregate already written is put back before the error propagates.
            prior_lifetime = {player.id: player.to_state() for player in players}
            prior_season = self._prior_season_states(scope.season_id, teams)
            written_players: list[PlayerRatingState] = []
            written_seasons: list[PlayerRatingState] = []
            try:
                for player_id in teams.player_ids:
                    self.store.write_player_aggregate(player_id, lifetime_states[player_id])
                    written_players.append(prior_lifetime[player_id])
                if scope.season_id is not None:
                    for player_id in teams.player_ids:
                        self.store.write_season_aggregate(
                            player_id, scope.season_id, season_states[player_id]
                        )
                        written_seasons.append(prior_season[player_id])
                match = self.store.insert_match(
                    replace(new_match, snapshot=snapshot, season_snapshot=season_snapshot)
                )
            except PersistenceError:
                logger.error(
                    "write failed, match not recorded %s players=%s",
                    scope.label(),
                    teams.player_ids,
                )
                self._restore_aggregates(scope, written_players, written_seasons)
                raise

            logger.info("recorded match_id=%s %s score=%s", match.id, scope.label(), match.score)
            return match

    def _load_players(self, group_id: str, teams: TeamAssignment) -> list[PlayerRecord]:
        players: list[PlayerRecord] = []
        for player_id in teams.player_ids:
            player = self.store.get_player(player_id)
            if player is None:
                raise ValidationError(f"player_id={player_id} not found")
            if player.group_id != group_id:
                raise ValidationError(
                    f"player_id={player_id} belongs to group {player.group_id}, not {group_id}"
                )
            players.append(player)
        return players

    def _load_season_states(
        self, season_id: str, teams: TeamAssignment
    ) -> dict[str, PlayerRatingState]:
        states: dict[str, PlayerRatingState] = {}
        for player_id in teams.player_ids:
            stored = self.store.get_season_aggregate(player_id, season_id)
            states[player_id] = stored or PlayerRatingState(
                player_id=player_id, rating=self.params.initial_rating
            )
        return states

    def _prior_season_states(
        self, season_id: str | None, teams: TeamAssignment
    ) -> dict[str, PlayerRatingState]:
        if season_id is None:
            return {}
        return self._load_season_states(season_id, teams)

    def _record_backdated(self, new_match: NewMatch, existing: list[MatchRecord]) -> MatchRecord:
        logger.info(
            "match predates newest match in group_id=%s, recording with full recalculation",
            new_match.group_id,
        )
        # Replay with the candidate first so ordering conflicts fail before any write.
        candidate = MatchRecord(
            id=_PENDING_MATCH_ID,
            group_id=new_match.group_id,
            season_id=new_match.season_id,
            teams=new_match.teams,
            team1_score=new_match.team1_score,
            team2_score=new_match.team2_score,
            match_date=new_match.match_date,
            match_time=new_match.match_time,
            created_at=new_match.created_at,
        )
        replay_matches([*existing, candidate], ReplayScope(new_match.group_id), params=self.params)

        inserted = self.store.insert_match(new_match)
        try:
            self.recalculator.recalculate(new_match.group_id, new_match.season_id)
        except PersistenceError:
            logger.error(
                "recalculation failed, removing match_id=%s group_id=%s",
                inserted.id,
                new_match.group_id,
            )
            self._rollback_insert(inserted)
            raise
        return self.store.get_match(inserted.id) or inserted

    def _rollback_insert(self, inserted: MatchRecord) -> None:
        try:
            self.store.delete_match(inserted.id)
            self.recalculator.recalculate(inserted.group_id, inserted.season_id)
        except PersistenceError:
            logger.exception(
                "could not restore group_id=%s after failed insert of match_id=%s; "
                "regenerate the group",
                inserted.group_id,
                inserted.id,
            )

    def _restore_aggregates(
        self,
        scope: ReplayScope,
        written_players: list[PlayerRatingState],
        written_seasons: list[PlayerRatingState],
    ) -> None:
        for state in written_players:
            try:
                self.store.write_player_aggregate(state.player_id, state)
            except PersistenceError:
                logger.exception("could not restore aggregate for player_id=%s", state.player_id)
        for state in written_seasons:
            try:
                self.store.write_season_aggregate(state.player_id, scope.season_id or "", state)
            except PersistenceError:
                logger.exception(
                    "could not restore season aggregate for player_id=%s %s",
                    state.player_id,
                    scope.label(),
                )


__all__ = ["IncrementalRecorder", "utc_now"]
