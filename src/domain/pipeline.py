"""Operator-facing bulk regeneration of a group's ratings and statistics."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging

from domain.common import PlayerRatingState, RatingSnapshot, ReplayScope
from domain.errors import PersistenceError
from domain.locks import GroupLocks
from domain.ratings.elo.calculator import DEFAULT_PARAMETERS, EloParameters
from domain.ratings.elo.replay import ReplayResult, replay_matches
from domain.recalculation import require_season, season_write_targets
from repositories.store import RatingStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegenerationSummary:
    """Outcome of one regeneration run.

    ``players``, ``season_stats`` and ``matches`` count the records in scope
    (written, or that would be written in a dry run); the ``*_failures``
    fields count writes that raised.
    """

    group_id: str
    season_id: str | None
    dry_run: bool
    processed_matches: int
    players: int
    season_stats: int
    matches: int
    player_failures: int = 0
    season_stat_failures: int = 0
    match_failures: int = 0

    @property
    def failed_writes(self) -> int:
        return self.player_failures + self.season_stat_failures + self.match_failures


def _format_change(name: str, pre_rating: int, post_rating: int) -> str:
    change = post_rating - pre_rating
    sign = "+" if change >= 0 else ""
    return f"    {name}: {pre_rating} -> {post_rating} ({sign}{change})"


def _write_each(
    items: list[tuple[str, Callable[[], None]]],
    *,
    kind: str,
) -> int:
    """Attempt every write independently; return the failure count."""
    failures = 0
    for record_id, write in items:
        try:
            write()
        except PersistenceError as exc:
            logger.error("failed to update %s %s: %s", kind, record_id, exc)
            failures += 1
    return failures


def regenerate_group_stats(
    store: RatingStore,
    group_id: str,
    *,
    season_id: str | None = None,
    dry_run: bool = False,
    verbose: bool = False,
    locks: GroupLocks,
    params: EloParameters = DEFAULT_PARAMETERS,
    echo: Callable[[str], None] = print,
) -> RegenerationSummary:
    """Replay a group (or one of its seasons) from baseline and rewrite the results.

    Without ``season_id`` the lifetime ratings are rebuilt together with the
    statistics of every season that has matches. With ``season_id`` only that
    season's statistics and snapshots are rebuilt. Read failures propagate;
    write failures are logged, counted and never stop the run.
    """
    with locks.hold(group_id):
        if season_id is not None:
            require_season(store, group_id, season_id)

        echo("Fetching data...")
        players = store.list_players(group_id)
        names = {player.id: player.name for player in players}
        roster = [player.id for player in players]
        echo(f"  Found {len(players)} players")

        matches = store.list_matches(group_id, season_id)
        echo(f"  Found {len(matches)} matches to replay")

        if not matches:
            echo("No matches to process; stored aggregates will be reset to baseline.")

        group_replay: ReplayResult | None = None
        season_replays: list[ReplayResult] = []
        if season_id is None:
            group_replay = replay_matches(
                matches, ReplayScope(group_id), roster=roster, params=params
            )
            season_ids = list(dict.fromkeys(m.season_id for m in matches if m.season_id is not None))
        else:
            season_ids = [season_id]
        for current_season_id in season_ids:
            season_replays.append(
                replay_matches(
                    matches,
                    ReplayScope(group_id, current_season_id),
                    roster=roster,
                    params=params,
                )
            )

        primary = group_replay or season_replays[0]
        _echo_replay(primary, names, verbose=verbose, echo=echo)
        _echo_rankings(primary, group_replay, season_replays, names, echo=echo)

        roster_ids = set(roster)
        player_writes: list[tuple[str, Callable[[], None]]] = []
        season_writes: list[tuple[str, Callable[[], None]]] = []
        snapshot_writes: dict[str, list[Callable[[], None]]] = {}

        if group_replay is not None:
            for player_id, state in group_replay.final_states.items():
                if player_id not in roster_ids:
                    logger.warning("player_id=%s appears in matches but not in roster", player_id)
                    continue
                player_writes.append((player_id, _player_write(store, player_id, state)))
            for match_id, snapshot in group_replay.snapshots.items():
                snapshot_writes.setdefault(match_id, []).append(
                    _snapshot_write(store, match_id, snapshot, None)
                )

        for season_replay in season_replays:
            current_season_id = season_replay.scope.season_id or ""
            for state in season_write_targets(
                store, current_season_id, season_replay.final_states, roster_ids
            ):
                season_writes.append(
                    (
                        f"{state.player_id}:{current_season_id}",
                        _season_write(store, state.player_id, current_season_id, state),
                    )
                )
            for match_id, snapshot in season_replay.snapshots.items():
                snapshot_writes.setdefault(match_id, []).append(
                    _snapshot_write(store, match_id, snapshot, current_season_id)
                )

        match_writes = [
            (match_id, _run_all(writes)) for match_id, writes in snapshot_writes.items()
        ]

        if dry_run:
            echo("[DRY RUN] Would update:")
            echo(f"  - {len(player_writes)} players")
            echo(f"  - {len(season_writes)} player season stats entries")
            echo(f"  - {len(match_writes)} match records")
            return RegenerationSummary(
                group_id=group_id,
                season_id=season_id,
                dry_run=True,
                processed_matches=len(matches),
                players=len(player_writes),
                season_stats=len(season_writes),
                matches=len(match_writes),
            )

        echo("Updating database...")
        player_failures = _write_each(player_writes, kind="player")
        echo(f"  Updated {len(player_writes) - player_failures} players")
        season_failures = _write_each(season_writes, kind="season stats")
        echo(f"  Updated {len(season_writes) - season_failures} season stats entries")
        match_failures = _write_each(match_writes, kind="match")
        echo(f"  Updated {len(match_writes) - match_failures} match records")

        return RegenerationSummary(
            group_id=group_id,
            season_id=season_id,
            dry_run=False,
            processed_matches=len(matches),
            players=len(player_writes),
            season_stats=len(season_writes),
            matches=len(match_writes),
            player_failures=player_failures,
            season_stat_failures=season_failures,
            match_failures=match_failures,
        )


def _run_all(writes: list[Callable[[], None]]) -> Callable[[], None]:
    def run() -> None:
        for write in writes:
            write()

    return run


def _player_write(store: RatingStore, player_id: str, state: PlayerRatingState) -> Callable[[], None]:
    return lambda: store.write_player_aggregate(player_id, state)


def _season_write(
    store: RatingStore, player_id: str, season_id: str, state: PlayerRatingState
) -> Callable[[], None]:
    return lambda: store.write_season_aggregate(player_id, season_id, state)


def _snapshot_write(
    store: RatingStore, match_id: str, snapshot: RatingSnapshot, season_id: str | None
) -> Callable[[], None]:
    return lambda: store.write_match_snapshot(match_id, snapshot, season_id=season_id)


def _echo_replay(
    replay: ReplayResult,
    names: dict[str, str],
    *,
    verbose: bool,
    echo: Callable[[str], None],
) -> None:
    echo("Replaying matches...")
    total = len(replay.lines)
    for line in replay.lines:
        match = line.match
        if verbose:
            echo(
                f"  [{line.index}/{total}] {match.match_date.isoformat()} "
                f"{match.match_time.isoformat()} ({match.score})"
            )
            for entry in line.snapshot.entries:
                echo(
                    _format_change(
                        names.get(entry.player_id, "Unknown"),
                        entry.pre_rating,
                        entry.post_rating,
                    )
                )
        elif line.index % 10 == 0 or line.index == total:
            echo(f"  Processed {line.index}/{total} matches")


def _echo_rankings(
    primary: ReplayResult,
    group_replay: ReplayResult | None,
    season_replays: list[ReplayResult],
    names: dict[str, str],
    *,
    echo: Callable[[str], None],
) -> None:
    echo("=== Final Player Rankings ===")
    for state in sorted(primary.final_states.values(), key=lambda s: s.rating, reverse=True):
        echo(f"  {names.get(state.player_id, 'Unknown')}: {state.rating} ({state.wins}W-{state.losses}L)")

    for season_replay in season_replays:
        if season_replay is primary and group_replay is None and len(season_replays) == 1:
            header = "=== Season Stats Summary ==="
        else:
            header = f"=== Season Stats Summary (season {season_replay.scope.season_id}) ==="
        echo(header)
        played = [s for s in season_replay.final_states.values() if s.matches_played > 0]
        for state in sorted(played, key=lambda s: s.rating, reverse=True):
            goal_diff = state.goal_difference
            goal_diff_str = f"+{goal_diff}" if goal_diff >= 0 else f"{goal_diff}"
            echo(
                f"  {names.get(state.player_id, 'Unknown')}: {state.rating} "
                f"({state.wins}W-{state.losses}L, GF:{state.goals_for} "
                f"GA:{state.goals_against} GD:{goal_diff_str})"
            )


__all__ = ["RegenerationSummary", "regenerate_group_stats"]
