"""Tests for full recalculation after edits and deletions."""

from __future__ import annotations

import pytest

from domain.common import ReplayScope, TeamAssignment
from domain.errors import PersistenceError, ValidationError
from domain.locks import GroupLocks
from domain.ratings.elo.replay import replay_matches
from domain.recalculation import FullRecalculator, MatchEditor


def _editor(group) -> MatchEditor:
    recalculator = FullRecalculator(group.store, GroupLocks(timeout_seconds=1.0))
    return MatchEditor(group.store, recalculator)


def _seed_three(group):
    first = group.add_match("Alice", "Bob", "Carol", "Dave", (10, 8), 0)
    middle = group.add_match("Alice", "Carol", "Bob", "Erin", (6, 10), 5)
    last = group.add_match("Dave", "Erin", "Alice", "Bob", (10, 2), 10)
    editor = _editor(group)
    editor.recalculator.recalculate("group-1", "season-1")
    return editor, first, middle, last


def test_deleting_a_middle_match_equals_fresh_replay(group) -> None:
    editor, first, middle, last = _seed_three(group)

    editor.delete_match(middle.id)

    roster = [player.id for player in group.store.list_players("group-1")]
    expected = replay_matches([first, last], ReplayScope("group-1"), roster=roster)
    for player_id, state in expected.final_states.items():
        stored = group.store.get_player(player_id)
        assert stored.rating == state.rating
        assert stored.matches_played == state.matches_played
    assert group.store.get_match(middle.id) is None
    assert group.store.get_match(last.id).snapshot == expected.snapshots[last.id]


def test_deleting_only_match_of_player_resets_them_to_baseline(group) -> None:
    editor, _, middle, last = _seed_three(group)
    editor.delete_match(middle.id)
    editor.delete_match(last.id)

    erin = group.store.get_player("p-erin")
    assert erin.rating == 1200
    assert erin.matches_played == 0
    season_erin = group.store.get_season_aggregate("p-erin", "season-1")
    assert season_erin.matches_played == 0
    assert season_erin.rating == 1200


def test_editing_a_score_flips_the_result(group) -> None:
    editor, first, middle, last = _seed_three(group)

    result = editor.edit_match(first.id, first.teams, 3, 10)

    matches = group.store.list_matches("group-1")
    expected = replay_matches(matches, ReplayScope("group-1"))
    assert result.group_replay.final_states == expected.final_states
    snapshot = group.store.get_match(first.id).snapshot
    assert snapshot.for_player("p-carol").post_rating == 1218
    assert snapshot.for_player("p-alice").post_rating == 1186
    assert group.store.get_season_aggregate("p-carol", "season-1").goals_for == 16


def test_editing_players_moves_history(group) -> None:
    editor, first, _, _ = _seed_three(group)

    editor.edit_match(first.id, group.teams("Alice", "Erin", "Carol", "Dave"), 10, 8)

    assert group.store.get_match(first.id).snapshot.for_player("p-erin").post_rating == 1218
    assert group.store.get_player("p-bob").matches_played == 2


def test_edit_with_invalid_result_changes_nothing(group) -> None:
    editor, first, _, _ = _seed_three(group)
    before = list(group.store.writes)

    with pytest.raises(ValidationError):
        editor.edit_match(first.id, first.teams, 7, 7)
    with pytest.raises(ValidationError):
        editor.edit_match(
            first.id, TeamAssignment(team1=("p-alice", "p-bob"), team2=("p-carol", "p-ghost")), 10, 8
        )

    assert group.store.writes == before


def test_unknown_match_is_rejected(group) -> None:
    with pytest.raises(ValidationError):
        _editor(group).delete_match("missing")


def test_recalculation_propagates_write_failures_and_is_rerunnable(group) -> None:
    editor, first, _, _ = _seed_three(group)
    group.store.failing_ids.add(first.id)

    with pytest.raises(PersistenceError):
        editor.recalculator.recalculate("group-1")

    group.store.failing_ids.clear()
    result = editor.recalculator.recalculate("group-1")
    assert result.snapshots_written == 3
    assert result.players_written == 5
