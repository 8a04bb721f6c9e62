"""Load Elo parameters from a TOML file."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any
import tomllib

from domain.errors import ConfigurationError
from domain.ratings.elo.calculator import EloParameters


@dataclass(frozen=True)
class EloSystemConfig:
    """Named set of Elo parameters used by replays."""

    name: str
    description: str | None
    file_path: Path
    parameters: EloParameters

    def as_config_json(self) -> dict[str, Any]:
        return {
            "initial_rating": self.parameters.initial_rating,
            "winner_k_factor": self.parameters.winner_k_factor,
            "loser_k_factor": self.parameters.loser_k_factor,
            "scale_factor": self.parameters.scale_factor,
            "min_rating": self.parameters.min_rating,
            "max_rating": self.parameters.max_rating,
        }


def load_elo_system_config(file_path: Path) -> EloSystemConfig:
    """Load and validate one Elo TOML config file."""
    if not file_path.exists():
        raise ConfigurationError(f"Config file not found: {file_path}")
    if not file_path.is_file():
        raise ConfigurationError(f"Config path is not a file: {file_path}")

    try:
        with file_path.open("rb") as file:
            raw = tomllib.load(file)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"{file_path}: invalid TOML ({exc})") from exc

    return _parse_elo_system_config(raw, file_path)


def _parse_elo_system_config(raw: dict[str, Any], file_path: Path) -> EloSystemConfig:
    system_raw = raw.get("system", {})
    elo_raw = raw.get("elo", {})

    name = str(system_raw.get("name", "")).strip()
    if not name:
        raise ConfigurationError(f"{file_path}: [system].name is required")

    description_value = system_raw.get("description")
    description = None if description_value is None else str(description_value)

    try:
        parameters = EloParameters(
            initial_rating=int(elo_raw.get("initial_rating", 1200)),
            winner_k_factor=float(elo_raw.get("winner_k_factor", 35.0)),
            loser_k_factor=float(elo_raw.get("loser_k_factor", 29.0)),
            scale_factor=float(elo_raw.get("scale_factor", 400.0)),
            min_rating=int(elo_raw.get("min_rating", 800)),
            max_rating=int(elo_raw.get("max_rating", 2400)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{file_path}: [elo] has a non-numeric value ({exc})") from exc
    _validate_parameters(file_path=file_path, parameters=parameters)

    return EloSystemConfig(
        name=name,
        description=description,
        file_path=file_path,
        parameters=parameters,
    )


def _validate_parameters(*, file_path: Path, parameters: EloParameters) -> None:
    if parameters.winner_k_factor <= 0.0:
        raise ConfigurationError(f"{file_path}: [elo].winner_k_factor must be > 0")
    if parameters.loser_k_factor <= 0.0:
        raise ConfigurationError(f"{file_path}: [elo].loser_k_factor must be > 0")
    if parameters.scale_factor <= 0.0:
        raise ConfigurationError(f"{file_path}: [elo].scale_factor must be > 0")
    if parameters.min_rating <= 0:
        raise ConfigurationError(f"{file_path}: [elo].min_rating must be > 0")
    if parameters.max_rating <= parameters.min_rating:
        raise ConfigurationError(f"{file_path}: [elo].max_rating must be > min_rating")
    if not parameters.min_rating <= parameters.initial_rating <= parameters.max_rating:
        raise ConfigurationError(
            f"{file_path}: [elo].initial_rating must be between min_rating and max_rating"
        )


__all__ = ["EloSystemConfig", "load_elo_system_config"]
