"""Database repository helpers."""

from repositories.sql_store import SqlAlchemyRatingStore, ensure_rating_schema
from repositories.store import InMemoryRatingStore, RatingStore

__all__ = [
    "InMemoryRatingStore",
    "RatingStore",
    "SqlAlchemyRatingStore",
    "ensure_rating_schema",
]
