"""Tests for the SQLAlchemy rating store against a SQLite file."""

from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path

import pytest

from db import create_db_engine, create_session_factory
from domain.common import (
    NewMatch,
    PlayerRatingState,
    RatingSnapshot,
    ReplayScope,
    SnapshotEntry,
    TeamAssignment,
)
from domain.errors import ConfigurationError, PersistenceError
from domain.locks import GroupLocks
from domain.pipeline import regenerate_group_stats
from domain.ratings.elo.replay import replay_matches
from domain.recorder import IncrementalRecorder
from repositories.sql_store import SqlAlchemyRatingStore, ensure_rating_schema

TEAMS = TeamAssignment(team1=("p-alice", "p-bob"), team2=("p-carol", "p-dave"))


@pytest.fixture
def store(tmp_path: Path) -> SqlAlchemyRatingStore:
    engine = create_db_engine(f"sqlite:///{tmp_path / 'ratings.db'}")
    ensure_rating_schema(engine)
    sql_store = SqlAlchemyRatingStore(create_session_factory(engine))
    for name in ("Alice", "Bob", "Carol", "Dave"):
        sql_store.add_player("group-1", name, player_id=f"p-{name.lower()}")
    sql_store.add_season("group-1", "Spring", date(2026, 3, 1), season_id="season-1")
    return sql_store


def _snapshot(post: tuple[int, int, int, int]) -> RatingSnapshot:
    entries = [
        SnapshotEntry(player_id=player_id, pre_rating=1200, post_rating=rating)
        for player_id, rating in zip(TEAMS.player_ids, post)
    ]
    return RatingSnapshot(team1=(entries[0], entries[1]), team2=(entries[2], entries[3]))


def _new_match(minute: int, *, season_id: str | None = "season-1", **kwargs) -> NewMatch:
    return NewMatch(
        group_id="group-1",
        season_id=season_id,
        teams=TEAMS,
        team1_score=10,
        team2_score=8,
        match_date=date(2026, 3, 2),
        match_time=time(18, minute),
        created_at=datetime(2026, 3, 2, 18, minute, 0),
        **kwargs,
    )


def test_invalid_database_url_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        create_db_engine("not a url")


def test_players_and_seasons_round_trip(store: SqlAlchemyRatingStore) -> None:
    players = store.list_players("group-1")
    assert [player.name for player in players] == ["Alice", "Bob", "Carol", "Dave"]
    assert all(player.rating == 1200 for player in players)
    assert store.list_players("group-2") == []
    season = store.get_season("season-1")
    assert season.start_date == date(2026, 3, 1)
    assert season.end_date is None
    assert store.get_season("missing") is None


def test_inserted_match_keeps_both_snapshots(store: SqlAlchemyRatingStore) -> None:
    lifetime = _snapshot((1218, 1218, 1186, 1186))
    seasonal = _snapshot((1219, 1219, 1185, 1185))

    match = store.insert_match(
        _new_match(0, recorded_by="user-1", snapshot=lifetime, season_snapshot=seasonal)
    )

    loaded = store.get_match(match.id)
    assert loaded.teams == TEAMS
    assert loaded.recorded_by == "user-1"
    assert loaded.snapshot == lifetime
    assert loaded.season_snapshot == seasonal


def test_list_matches_is_in_replay_order_and_filters_season(store: SqlAlchemyRatingStore) -> None:
    late = store.insert_match(_new_match(30))
    early = store.insert_match(_new_match(5, season_id=None))

    assert [m.id for m in store.list_matches("group-1")] == [early.id, late.id]
    assert [m.id for m in store.list_matches("group-1", "season-1")] == [late.id]


def test_snapshot_writes_replace_only_their_scope(store: SqlAlchemyRatingStore) -> None:
    match = store.insert_match(_new_match(0, snapshot=_snapshot((1, 2, 3, 4))))
    seasonal = _snapshot((1219, 1219, 1185, 1185))

    store.write_match_snapshot(match.id, seasonal, season_id="season-1")
    store.write_match_snapshot(match.id, _snapshot((1218, 1218, 1186, 1186)))

    loaded = store.get_match(match.id)
    assert loaded.snapshot == _snapshot((1218, 1218, 1186, 1186))
    assert loaded.season_snapshot == seasonal


def test_season_snapshot_for_wrong_season_is_rejected(store: SqlAlchemyRatingStore) -> None:
    match = store.insert_match(_new_match(0, season_id=None))

    with pytest.raises(PersistenceError):
        store.write_match_snapshot(match.id, _snapshot((1, 2, 3, 4)), season_id="season-1")


def test_aggregates_are_written_and_upserted(store: SqlAlchemyRatingStore) -> None:
    state = PlayerRatingState(player_id="p-alice", rating=1240, matches_played=3, wins=2, losses=1)
    store.write_player_aggregate("p-alice", state)
    assert store.get_player("p-alice").rating == 1240

    assert store.get_season_aggregate("p-alice", "season-1") is None
    store.write_season_aggregate("p-alice", "season-1", state)
    updated = PlayerRatingState(
        player_id="p-alice", rating=1250, matches_played=4, wins=3, losses=1, goals_for=38, goals_against=20
    )
    store.write_season_aggregate("p-alice", "season-1", updated)
    assert store.get_season_aggregate("p-alice", "season-1") == updated


def test_writing_unknown_player_raises(store: SqlAlchemyRatingStore) -> None:
    with pytest.raises(PersistenceError):
        store.write_player_aggregate("p-ghost", PlayerRatingState(player_id="p-ghost"))


def test_out_of_bounds_rating_is_rejected_by_the_database(store: SqlAlchemyRatingStore) -> None:
    with pytest.raises(PersistenceError):
        store.write_player_aggregate("p-alice", PlayerRatingState(player_id="p-alice", rating=3000))
    assert store.get_player("p-alice").rating == 1200


def test_update_and_delete_match(store: SqlAlchemyRatingStore) -> None:
    match = store.insert_match(_new_match(0, snapshot=_snapshot((1, 2, 3, 4))))
    flipped = TeamAssignment(team1=("p-alice", "p-carol"), team2=("p-bob", "p-dave"))

    updated = store.update_match(match.id, flipped, 3, 10)
    assert updated.teams == flipped
    assert updated.score == "3-10"

    store.delete_match(match.id)
    assert store.get_match(match.id) is None
    with pytest.raises(PersistenceError):
        store.delete_match(match.id)


def test_recorder_and_regeneration_agree_on_sql_store(store: SqlAlchemyRatingStore) -> None:
    locks = GroupLocks(timeout_seconds=1.0)
    ticks = iter(datetime(2026, 3, 2, 18, minute) for minute in range(0, 60, 5))
    recorder = IncrementalRecorder(store, locks, clock=lambda: next(ticks))
    scope = ReplayScope("group-1", "season-1")
    recorder.record(scope, TEAMS, 10, 8)
    recorder.record(scope, TeamAssignment(team1=("p-alice", "p-carol"), team2=("p-bob", "p-dave")), 4, 10)
    recorded = {p.id: p.rating for p in store.list_players("group-1")}

    summary = regenerate_group_stats(store, "group-1", locks=locks, echo=lambda _: None)

    assert summary.failed_writes == 0
    assert {p.id: p.rating for p in store.list_players("group-1")} == recorded
    expected = replay_matches(store.list_matches("group-1"), ReplayScope("group-1"))
    assert recorded == {pid: state.rating for pid, state in expected.final_states.items()}


def test_list_matches_loads_snapshots_for_every_match(store: SqlAlchemyRatingStore) -> None:
    posts = [(1218, 1218, 1186, 1186), (1236, 1236, 1172, 1172), (1222, 1222, 1190, 1190)]
    for minute, post in enumerate(posts):
        store.insert_match(
            _new_match(minute, snapshot=_snapshot(post), season_snapshot=_snapshot(post))
        )
    store.insert_match(_new_match(10, season_id=None, snapshot=_snapshot((1210, 1210, 1190, 1190))))

    matches = store.list_matches("group-1")

    assert [m.snapshot.team1[0].post_rating for m in matches] == [1218, 1236, 1222, 1210]
    assert [m.season_snapshot is not None for m in matches] == [True, True, True, False]
    assert matches[1].season_snapshot.team2[1].post_rating == 1172


def test_advisory_lock_is_a_no_op_on_sqlite(store: SqlAlchemyRatingStore) -> None:
    store.insert_match(_new_match(0))
    locks = GroupLocks(timeout_seconds=1.0, advisory=store.advisory_lock)

    with locks.hold("group-1"):
        summary = regenerate_group_stats(store, "group-1", locks=locks, echo=lambda _: None)

    assert summary.failed_writes == 0
    assert store.get_player("p-alice").rating == 1218
