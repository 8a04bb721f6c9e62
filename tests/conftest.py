"""Shared fixtures for rating tests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

import pytest

from domain.common import PlayerRecord, SeasonRecord, TeamAssignment
from repositories.store import InMemoryRatingStore

GROUP_ID = "group-1"
START = datetime(2026, 3, 2, 18, 0, 0)


@dataclass
class SeededGroup:
    store: InMemoryRatingStore
    players: dict[str, PlayerRecord]
    season: SeasonRecord

    def ids(self, *names: str) -> tuple[str, ...]:
        return tuple(self.players[name].id for name in names)

    def teams(self, a: str, b: str, c: str, d: str) -> TeamAssignment:
        return TeamAssignment(team1=self.ids(a, b), team2=self.ids(c, d))

    def add_match(
        self,
        a: str,
        b: str,
        c: str,
        d: str,
        score: tuple[int, int],
        minutes: int,
        *,
        in_season: bool = True,
        match_id: str | None = None,
    ):
        return self.store.add_match(
            GROUP_ID,
            self.teams(a, b, c, d),
            score[0],
            score[1],
            START + timedelta(minutes=minutes),
            season_id=self.season.id if in_season else None,
            match_id=match_id,
        )


@pytest.fixture
def group() -> SeededGroup:
    store = InMemoryRatingStore()
    players = {
        name: store.add_player(GROUP_ID, name, player_id=f"p-{name.lower()}")
        for name in ("Alice", "Bob", "Carol", "Dave", "Erin")
    }
    season = store.add_season(GROUP_ID, "Spring", date(2026, 3, 1), season_id="season-1")
    return SeededGroup(store=store, players=players, season=season)
