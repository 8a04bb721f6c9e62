"""Persistence contract for the rating core and its in-memory implementation."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import Protocol, runtime_checkable
from uuid import uuid4

from domain.common import (
    MatchRecord,
    NewMatch,
    PlayerRatingState,
    PlayerRecord,
    RatingSnapshot,
    SeasonRecord,
    TeamAssignment,
)
from domain.errors import PersistenceError
from domain.ordering import ordering_key


@runtime_checkable
class RatingStore(Protocol):
    """Read/write operations the rating core needs from the datastore.

    Every method raises ``PersistenceError`` on failure. Calls are independent:
    nothing groups two calls into one transaction.
    """

    def list_players(self, group_id: str) -> list[PlayerRecord]: ...

    def get_player(self, player_id: str) -> PlayerRecord | None: ...

    def list_matches(self, group_id: str, season_id: str | None = None) -> list[MatchRecord]: ...

    def get_match(self, match_id: str) -> MatchRecord | None: ...

    def get_season(self, season_id: str) -> SeasonRecord | None: ...

    def get_season_aggregate(self, player_id: str, season_id: str) -> PlayerRatingState | None: ...

    def write_player_aggregate(self, player_id: str, state: PlayerRatingState) -> None: ...

    def write_season_aggregate(
        self, player_id: str, season_id: str, state: PlayerRatingState
    ) -> None: ...

    def write_match_snapshot(
        self, match_id: str, snapshot: RatingSnapshot, *, season_id: str | None = None
    ) -> None: ...

    def insert_match(self, new_match: NewMatch) -> MatchRecord: ...

    def update_match(
        self, match_id: str, teams: TeamAssignment, team1_score: int, team2_score: int
    ) -> MatchRecord: ...

    def delete_match(self, match_id: str) -> None: ...


class InMemoryRatingStore:
    """Dict-backed ``RatingStore`` used by tests and dry tooling.

    ``failing_ids`` makes any write touching one of those ids raise
    ``PersistenceError``; ``fail_reads`` does the same for every read.
    ``writes`` records each successful write as ``(kind, id)``.
    """

    def __init__(self) -> None:
        self._players: dict[str, PlayerRecord] = {}
        self._seasons: dict[str, SeasonRecord] = {}
        self._matches: dict[str, MatchRecord] = {}
        self._season_stats: dict[tuple[str, str], PlayerRatingState] = {}
        self.failing_ids: set[str] = set()
        self.fail_reads = False
        self.writes: list[tuple[str, str]] = []

    # Seeding helpers

    def add_player(self, group_id: str, name: str, *, player_id: str | None = None) -> PlayerRecord:
        player = PlayerRecord(id=player_id or str(uuid4()), group_id=group_id, name=name)
        self._players[player.id] = player
        return player

    def add_season(
        self,
        group_id: str,
        name: str,
        start_date: date,
        end_date: date | None = None,
        *,
        season_id: str | None = None,
    ) -> SeasonRecord:
        season = SeasonRecord(
            id=season_id or str(uuid4()),
            group_id=group_id,
            name=name,
            start_date=start_date,
            end_date=end_date,
        )
        self._seasons[season.id] = season
        return season

    def add_match(
        self,
        group_id: str,
        teams: TeamAssignment,
        team1_score: int,
        team2_score: int,
        played_at: datetime,
        *,
        season_id: str | None = None,
        created_at: datetime | None = None,
        match_id: str | None = None,
    ) -> MatchRecord:
        match = MatchRecord(
            id=match_id or str(uuid4()),
            group_id=group_id,
            season_id=season_id,
            teams=teams,
            team1_score=team1_score,
            team2_score=team2_score,
            match_date=played_at.date(),
            match_time=played_at.time().replace(microsecond=0),
            created_at=created_at or played_at,
        )
        self._matches[match.id] = match
        return match

    # Reads

    def _check_reads(self) -> None:
        if self.fail_reads:
            raise PersistenceError("in-memory store configured to fail reads")

    def list_players(self, group_id: str) -> list[PlayerRecord]:
        self._check_reads()
        return [player for player in self._players.values() if player.group_id == group_id]

    def get_player(self, player_id: str) -> PlayerRecord | None:
        self._check_reads()
        return self._players.get(player_id)

    def list_matches(self, group_id: str, season_id: str | None = None) -> list[MatchRecord]:
        self._check_reads()
        matches = [
            match
            for match in self._matches.values()
            if match.group_id == group_id and (season_id is None or match.season_id == season_id)
        ]
        return sorted(matches, key=ordering_key)

    def get_match(self, match_id: str) -> MatchRecord | None:
        self._check_reads()
        return self._matches.get(match_id)

    def get_season(self, season_id: str) -> SeasonRecord | None:
        self._check_reads()
        return self._seasons.get(season_id)

    def get_season_aggregate(self, player_id: str, season_id: str) -> PlayerRatingState | None:
        self._check_reads()
        state = self._season_stats.get((player_id, season_id))
        return None if state is None else state.copy()

    def season_aggregates(self, season_id: str) -> dict[str, PlayerRatingState]:
        return {
            player_id: state.copy()
            for (player_id, stats_season_id), state in self._season_stats.items()
            if stats_season_id == season_id
        }

    # Writes

    def _check_write(self, *ids: str) -> None:
        failing = [record_id for record_id in ids if record_id in self.failing_ids]
        if failing:
            raise PersistenceError(f"write rejected for {failing[0]}")

    def write_player_aggregate(self, player_id: str, state: PlayerRatingState) -> None:
        self._check_write(player_id)
        player = self._players.get(player_id)
        if player is None:
            raise PersistenceError(f"player_id={player_id} not found")
        self._players[player_id] = replace(
            player,
            rating=state.rating,
            matches_played=state.matches_played,
            wins=state.wins,
            losses=state.losses,
        )
        self.writes.append(("player", player_id))

    def write_season_aggregate(
        self, player_id: str, season_id: str, state: PlayerRatingState
    ) -> None:
        self._check_write(player_id, season_id)
        if season_id not in self._seasons:
            raise PersistenceError(f"season_id={season_id} not found")
        self._season_stats[(player_id, season_id)] = state.copy()
        self.writes.append(("season_stats", f"{player_id}:{season_id}"))

    def write_match_snapshot(
        self, match_id: str, snapshot: RatingSnapshot, *, season_id: str | None = None
    ) -> None:
        self._check_write(match_id)
        match = self._matches.get(match_id)
        if match is None:
            raise PersistenceError(f"match_id={match_id} not found")
        if season_id is None:
            self._matches[match_id] = replace(match, snapshot=snapshot)
        elif match.season_id != season_id:
            raise PersistenceError(f"match_id={match_id} does not belong to season_id={season_id}")
        else:
            self._matches[match_id] = replace(match, season_snapshot=snapshot)
        self.writes.append(("match", match_id))

    def insert_match(self, new_match: NewMatch) -> MatchRecord:
        match = MatchRecord(
            id=str(uuid4()),
            group_id=new_match.group_id,
            season_id=new_match.season_id,
            teams=new_match.teams,
            team1_score=new_match.team1_score,
            team2_score=new_match.team2_score,
            match_date=new_match.match_date,
            match_time=new_match.match_time,
            created_at=new_match.created_at,
            recorded_by=new_match.recorded_by,
            snapshot=new_match.snapshot,
            season_snapshot=new_match.season_snapshot,
        )
        self._check_write(match.id, *new_match.teams.player_ids)
        self._matches[match.id] = match
        self.writes.append(("insert_match", match.id))
        return match

    def update_match(
        self, match_id: str, teams: TeamAssignment, team1_score: int, team2_score: int
    ) -> MatchRecord:
        self._check_write(match_id)
        match = self._matches.get(match_id)
        if match is None:
            raise PersistenceError(f"match_id={match_id} not found")
        updated = replace(match, teams=teams, team1_score=team1_score, team2_score=team2_score)
        self._matches[match_id] = updated
        self.writes.append(("update_match", match_id))
        return updated

    def delete_match(self, match_id: str) -> None:
        self._check_write(match_id)
        if self._matches.pop(match_id, None) is None:
            raise PersistenceError(f"match_id={match_id} not found")
        self.writes.append(("delete_match", match_id))


__all__ = ["InMemoryRatingStore", "RatingStore"]
