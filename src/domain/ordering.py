"""Canonical replay order for matches."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, time

from domain.common import MatchRecord
from domain.errors import OrderingConflict

OrderingKey = tuple[date, time, datetime]


def ordering_key(match: MatchRecord) -> OrderingKey:
    """(match_date, match_time, created_at); created_at breaks same-minute ties."""
    return (match.match_date, match.match_time, match.created_at)


def order_matches(matches: Iterable[MatchRecord]) -> list[MatchRecord]:
    """Sort matches into replay order, rejecting duplicate ordering keys."""
    ordered = sorted(matches, key=ordering_key)
    for previous, current in zip(ordered, ordered[1:]):
        if ordering_key(previous) == ordering_key(current):
            raise OrderingConflict(previous.id, current.id, ordering_key(current))
    return ordered


def sorts_after(candidate: OrderingKey, matches: Iterable[MatchRecord]) -> bool:
    """True when ``candidate`` would be the newest key among ``matches``."""
    return all(ordering_key(match) < candidate for match in matches)


__all__ = ["OrderingKey", "order_matches", "ordering_key", "sorts_after"]
