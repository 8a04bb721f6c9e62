"""SQLAlchemy-backed ``RatingStore``."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date
import logging
import time
from uuid import uuid4

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from domain.common import (
    MatchRecord,
    NewMatch,
    PlayerRatingState,
    PlayerRecord,
    RatingSnapshot,
    SeasonRecord,
    SnapshotEntry,
    TeamAssignment,
)
from domain.errors import GroupBusyError, PersistenceError
from models import Base, Match, MatchRating, Player, PlayerSeasonStats, Season

logger = logging.getLogger(__name__)

_ADVISORY_POLL_SECONDS = 0.1
_IN_CLAUSE_BATCH = 500

_RATING_TABLES = [
    Player.__table__,
    Season.__table__,
    Match.__table__,
    PlayerSeasonStats.__table__,
    MatchRating.__table__,
]


def ensure_rating_schema(engine: Engine) -> None:
    """Create the rating tables and their indexes if they do not exist."""
    try:
        Base.metadata.create_all(bind=engine, tables=_RATING_TABLES)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"failed to create rating schema: {exc}") from exc


def _to_player(row: Player) -> PlayerRecord:
    return PlayerRecord(
        id=row.id,
        group_id=row.group_id,
        name=row.name,
        rating=row.ranking,
        matches_played=row.matches_played,
        wins=row.wins,
        losses=row.losses,
    )


def _to_season(row: Season) -> SeasonRecord:
    return SeasonRecord(
        id=row.id,
        group_id=row.group_id,
        name=row.name,
        start_date=row.start_date,
        end_date=row.end_date,
    )


def _snapshot_from_rows(rows: list[MatchRating]) -> RatingSnapshot | None:
    by_seat = {row.seat: row for row in rows}
    if sorted(by_seat) != [1, 2, 3, 4]:
        return None
    entries = [
        SnapshotEntry(
            player_id=by_seat[seat].player_id,
            pre_rating=by_seat[seat].pre_rating,
            post_rating=by_seat[seat].post_rating,
        )
        for seat in (1, 2, 3, 4)
    ]
    return RatingSnapshot(team1=(entries[0], entries[1]), team2=(entries[2], entries[3]))


def _snapshot_rows(
    match_id: str, snapshot: RatingSnapshot, season_id: str | None
) -> list[MatchRating]:
    return [
        MatchRating(
            match_id=match_id,
            player_id=entry.player_id,
            season_id=season_id,
            seat=seat,
            pre_rating=entry.pre_rating,
            post_rating=entry.post_rating,
        )
        for seat, entry in enumerate(snapshot.entries, start=1)
    ]


def _to_match(row: Match, rating_rows: list[MatchRating]) -> MatchRecord:
    lifetime = [r for r in rating_rows if r.season_id is None]
    seasonal = [r for r in rating_rows if r.season_id is not None and r.season_id == row.season_id]
    return MatchRecord(
        id=row.id,
        group_id=row.group_id,
        season_id=row.season_id,
        teams=TeamAssignment(
            team1=(row.team1_player1_id, row.team1_player2_id),
            team2=(row.team2_player1_id, row.team2_player2_id),
        ),
        team1_score=row.team1_score,
        team2_score=row.team2_score,
        match_date=row.match_date,
        match_time=row.match_time,
        created_at=row.created_at,
        recorded_by=row.recorded_by,
        snapshot=_snapshot_from_rows(lifetime),
        season_snapshot=_snapshot_from_rows(seasonal),
    )


class SqlAlchemyRatingStore:
    """``RatingStore`` over the players/seasons/matches tables.

    Each call runs in its own transaction; driver errors surface as
    ``PersistenceError`` after rollback.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Session]:
        try:
            with self._session_factory() as session, session.begin():
                yield session
        except SQLAlchemyError as exc:
            raise PersistenceError(f"{action} failed: {exc}") from exc

    @contextmanager
    def advisory_lock(self, group_id: str, timeout_seconds: float) -> Iterator[None]:
        """Hold a PostgreSQL transaction-level advisory lock on the group.

        The lock lives on a dedicated connection whose transaction stays open
        until the block exits, so it excludes other processes using the same
        database. Other dialects have no advisory locks; there the block runs
        with only the in-process lock.
        """
        try:
            with self._session_factory() as session:
                if session.get_bind().dialect.name != "postgresql":
                    logger.debug("no advisory lock for dialect, group_id=%s", group_id)
                    yield
                    return
                deadline = time.monotonic() + timeout_seconds
                while not session.scalar(
                    text("SELECT pg_try_advisory_xact_lock(hashtext(:key))"),
                    {"key": f"rating-group:{group_id}"},
                ):
                    if time.monotonic() >= deadline:
                        logger.warning("timed out waiting for advisory lock group_id=%s", group_id)
                        raise GroupBusyError(group_id, timeout_seconds)
                    time.sleep(_ADVISORY_POLL_SECONDS)
                try:
                    yield
                finally:
                    session.rollback()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"advisory lock for group {group_id} failed: {exc}") from exc

    def _to_matches(self, session: Session, rows: Sequence[Match]) -> list[MatchRecord]:
        ratings_by_match: dict[str, list[MatchRating]] = defaultdict(list)
        match_ids = [row.id for row in rows]
        for start in range(0, len(match_ids), _IN_CLAUSE_BATCH):
            batch = match_ids[start : start + _IN_CLAUSE_BATCH]
            for rating_row in session.scalars(
                select(MatchRating).where(MatchRating.match_id.in_(batch))
            ):
                ratings_by_match[rating_row.match_id].append(rating_row)
        return [_to_match(row, ratings_by_match[row.id]) for row in rows]

    def _load_match(self, session: Session, row: Match) -> MatchRecord:
        return self._to_matches(session, [row])[0]

    # Seeding helpers

    def add_player(self, group_id: str, name: str, *, player_id: str | None = None) -> PlayerRecord:
        row = Player(
            id=player_id or str(uuid4()),
            group_id=group_id,
            name=name,
            ranking=1200,
            matches_played=0,
            wins=0,
            losses=0,
        )
        with self._transaction("add player") as session:
            session.add(row)
            session.flush()
            return _to_player(row)

    def add_season(
        self,
        group_id: str,
        name: str,
        start_date: date,
        end_date: date | None = None,
        *,
        season_id: str | None = None,
    ) -> SeasonRecord:
        row = Season(
            id=season_id or str(uuid4()),
            group_id=group_id,
            name=name,
            start_date=start_date,
            end_date=end_date,
        )
        with self._transaction("add season") as session:
            session.add(row)
            session.flush()
            return _to_season(row)

    # Reads

    def list_players(self, group_id: str) -> list[PlayerRecord]:
        with self._transaction("list players") as session:
            rows = session.scalars(
                select(Player).where(Player.group_id == group_id).order_by(Player.name, Player.id)
            ).all()
            return [_to_player(row) for row in rows]

    def get_player(self, player_id: str) -> PlayerRecord | None:
        with self._transaction("get player") as session:
            row = session.get(Player, player_id)
            return None if row is None else _to_player(row)

    def list_matches(self, group_id: str, season_id: str | None = None) -> list[MatchRecord]:
        statement = select(Match).where(Match.group_id == group_id)
        if season_id is not None:
            statement = statement.where(Match.season_id == season_id)
        statement = statement.order_by(Match.match_date, Match.match_time, Match.created_at)
        with self._transaction("list matches") as session:
            return self._to_matches(session, session.scalars(statement).all())

    def get_match(self, match_id: str) -> MatchRecord | None:
        with self._transaction("get match") as session:
            row = session.get(Match, match_id)
            return None if row is None else self._load_match(session, row)

    def get_season(self, season_id: str) -> SeasonRecord | None:
        with self._transaction("get season") as session:
            row = session.get(Season, season_id)
            return None if row is None else _to_season(row)

    def get_season_aggregate(self, player_id: str, season_id: str) -> PlayerRatingState | None:
        with self._transaction("get season aggregate") as session:
            row = session.scalars(
                select(PlayerSeasonStats).where(
                    PlayerSeasonStats.player_id == player_id,
                    PlayerSeasonStats.season_id == season_id,
                )
            ).one_or_none()
            if row is None:
                return None
            return PlayerRatingState(
                player_id=row.player_id,
                rating=row.ranking,
                matches_played=row.matches_played,
                wins=row.wins,
                losses=row.losses,
                goals_for=row.goals_for,
                goals_against=row.goals_against,
            )

    # Writes

    def write_player_aggregate(self, player_id: str, state: PlayerRatingState) -> None:
        with self._transaction(f"update player {player_id}") as session:
            result = session.execute(
                update(Player)
                .where(Player.id == player_id)
                .values(
                    ranking=state.rating,
                    matches_played=state.matches_played,
                    wins=state.wins,
                    losses=state.losses,
                    updated_at=func.now(),
                )
            )
            if result.rowcount == 0:
                raise PersistenceError(f"player_id={player_id} not found")

    def write_season_aggregate(
        self, player_id: str, season_id: str, state: PlayerRatingState
    ) -> None:
        with self._transaction(f"update season stats {player_id}:{season_id}") as session:
            row = session.scalars(
                select(PlayerSeasonStats).where(
                    PlayerSeasonStats.player_id == player_id,
                    PlayerSeasonStats.season_id == season_id,
                )
            ).one_or_none()
            if row is None:
                row = PlayerSeasonStats(player_id=player_id, season_id=season_id)
                session.add(row)
            row.ranking = state.rating
            row.matches_played = state.matches_played
            row.wins = state.wins
            row.losses = state.losses
            row.goals_for = state.goals_for
            row.goals_against = state.goals_against

    def write_match_snapshot(
        self, match_id: str, snapshot: RatingSnapshot, *, season_id: str | None = None
    ) -> None:
        with self._transaction(f"update match {match_id}") as session:
            match = session.get(Match, match_id)
            if match is None:
                raise PersistenceError(f"match_id={match_id} not found")
            if season_id is not None and match.season_id != season_id:
                raise PersistenceError(
                    f"match_id={match_id} does not belong to season_id={season_id}"
                )
            scope_filter = (
                MatchRating.season_id.is_(None)
                if season_id is None
                else MatchRating.season_id == season_id
            )
            session.execute(
                delete(MatchRating).where(MatchRating.match_id == match_id, scope_filter)
            )
            session.add_all(_snapshot_rows(match_id, snapshot, season_id))

    def insert_match(self, new_match: NewMatch) -> MatchRecord:
        teams = new_match.teams
        row = Match(
            id=str(uuid4()),
            group_id=new_match.group_id,
            season_id=new_match.season_id,
            team1_player1_id=teams.team1[0],
            team1_player2_id=teams.team1[1],
            team2_player1_id=teams.team2[0],
            team2_player2_id=teams.team2[1],
            team1_score=new_match.team1_score,
            team2_score=new_match.team2_score,
            match_date=new_match.match_date,
            match_time=new_match.match_time,
            created_at=new_match.created_at,
            recorded_by=new_match.recorded_by,
        )
        with self._transaction("insert match") as session:
            session.add(row)
            session.flush()
            if new_match.snapshot is not None:
                session.add_all(_snapshot_rows(row.id, new_match.snapshot, None))
            if new_match.season_snapshot is not None and new_match.season_id is not None:
                session.add_all(
                    _snapshot_rows(row.id, new_match.season_snapshot, new_match.season_id)
                )
            session.flush()
            return self._load_match(session, row)

    def update_match(
        self, match_id: str, teams: TeamAssignment, team1_score: int, team2_score: int
    ) -> MatchRecord:
        with self._transaction(f"edit match {match_id}") as session:
            row = session.get(Match, match_id)
            if row is None:
                raise PersistenceError(f"match_id={match_id} not found")
            row.team1_player1_id, row.team1_player2_id = teams.team1
            row.team2_player1_id, row.team2_player2_id = teams.team2
            row.team1_score = team1_score
            row.team2_score = team2_score
            session.flush()
            return self._load_match(session, row)

    def delete_match(self, match_id: str) -> None:
        with self._transaction(f"delete match {match_id}") as session:
            session.execute(delete(MatchRating).where(MatchRating.match_id == match_id))
            result = session.execute(delete(Match).where(Match.id == match_id))
            if result.rowcount == 0:
                raise PersistenceError(f"match_id={match_id} not found")


__all__ = ["SqlAlchemyRatingStore", "ensure_rating_schema"]
