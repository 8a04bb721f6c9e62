#!/usr/bin/env python3
"""Regenerate player ratings, season stats and match snapshots for one group."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from db import DEFAULT_DB_URL, create_db_engine, create_session_factory
from domain.errors import (
    ConfigurationError,
    GroupBusyError,
    OrderingConflict,
    PersistenceError,
    ValidationError,
)
from domain.locks import DEFAULT_LOCK_TIMEOUT_SECONDS, GroupLocks
from domain.pipeline import regenerate_group_stats
from domain.ratings.elo.config import load_elo_system_config
from repositories.sql_store import SqlAlchemyRatingStore, ensure_rating_schema

DEFAULT_CONFIG_PATH = ROOT_DIR / "configs" / "ratings" / "elo" / "default.toml"

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Foosball rating jobs.",
)


@app.command("regenerate")
def regenerate_stats(
    group_id: Annotated[
        str,
        typer.Option("--group-id", help="Group whose history is replayed."),
    ],
    season_id: Annotated[
        str | None,
        typer.Option("--season-id", help="Only rebuild this season's stats and snapshots."),
    ] = None,
    db_url: Annotated[
        str,
        typer.Option(
            "--db-url",
            envvar="FOOSBALL_DATABASE_URL",
            help="Database URL. Defaults to the local foosball postgres instance.",
        ),
    ] = DEFAULT_DB_URL,
    config_path: Annotated[
        Path,
        typer.Option("--config", help="Elo parameter TOML file."),
    ] = DEFAULT_CONFIG_PATH,
    timeout_seconds: Annotated[
        float,
        typer.Option("--timeout", help="Connection and pool timeout in seconds."),
    ] = 10.0,
    lock_timeout_seconds: Annotated[
        float,
        typer.Option("--lock-timeout", help="Seconds to wait for another job holding the group."),
    ] = DEFAULT_LOCK_TIMEOUT_SECONDS,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Replay and report without writing anything."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Print every match and rating change."),
    ] = False,
) -> None:
    """Replay a group's matches from baseline and rewrite every derived value."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if timeout_seconds <= 0:
        raise typer.BadParameter("--timeout must be greater than 0")
    if lock_timeout_seconds <= 0:
        raise typer.BadParameter("--lock-timeout must be greater than 0")

    try:
        config = load_elo_system_config(config_path)
        engine = create_db_engine(db_url, timeout_seconds=timeout_seconds)
        if not dry_run:
            ensure_rating_schema(engine)
        store = SqlAlchemyRatingStore(create_session_factory(engine))
        locks = GroupLocks(timeout_seconds=lock_timeout_seconds, advisory=store.advisory_lock)

        typer.echo(f"Regenerating stats for group {group_id} using system={config.name}")
        typer.echo(f"  Parameters: {json.dumps(config.as_config_json(), sort_keys=True)}")
        if season_id:
            typer.echo(f"  Season: {season_id}")
        if dry_run:
            typer.echo("  [DRY RUN MODE - no changes will be saved]")

        summary = regenerate_group_stats(
            store,
            group_id,
            season_id=season_id,
            dry_run=dry_run,
            verbose=verbose,
            locks=locks,
            params=config.parameters,
            echo=typer.echo,
        )
    except (
        ConfigurationError,
        GroupBusyError,
        OrderingConflict,
        PersistenceError,
        ValidationError,
    ) as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if summary.failed_writes:
        typer.echo(f"completed with failed_writes={summary.failed_writes}", err=True)
    else:
        typer.echo("completed")


if __name__ == "__main__":
    app()
