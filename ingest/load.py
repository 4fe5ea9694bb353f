"""Load module for the per-match inputs and season tables."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .log import log_warning


@dataclass(frozen=True)
class SeasonPaths:
    """File locations for one season's tables and one match's incoming files."""

    schedule: Path
    players: Path
    games: Path
    boxscores: Path
    payload: Path
    event_log: Path


def season_paths(
    season_id: str, match_id: str, data_root: str = "data", incoming_root: str = "ops/incoming"
) -> SeasonPaths:
    """
    Resolve every input/output path for a match import.

    Args:
        season_id: Season identifier (e.g. "S2")
        match_id: Match identifier (e.g. "M1-G1")
        data_root: Base directory holding <season>/*.csv tables
        incoming_root: Base directory holding <season>/<match>.json/.csv

    Returns:
        SeasonPaths for the match
    """
    season_dir = Path(data_root) / season_id
    incoming_dir = Path(incoming_root) / season_id
    return SeasonPaths(
        schedule=season_dir / "schedule.csv",
        players=season_dir / "players.csv",
        games=season_dir / "games.csv",
        boxscores=season_dir / "boxscores.csv",
        payload=incoming_dir / f"{match_id}.json",
        event_log=incoming_dir / f"{match_id}.csv",
    )


def require_inputs(paths: SeasonPaths) -> None:
    """Raise FileNotFoundError for the first missing required input."""
    required = [
        ("Match payload", paths.payload),
        ("Season schedule", paths.schedule),
        ("Season players", paths.players),
    ]
    for label, path in required:
        if not path.exists():
            raise FileNotFoundError(f"{label} not found: {path}")


def read_payload(payload_path: Path) -> dict:
    """
    Read the match payload JSON.

    Args:
        payload_path: Path to <match>.json

    Returns:
        Payload dict with 'teamStats' and 'players' keys normalized to
        a dict and a list respectively
    """
    with open(payload_path, encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Match payload is not a JSON object: {payload_path}")

    if not isinstance(data.get("teamStats"), dict):
        data["teamStats"] = {}
    if not isinstance(data.get("players"), list):
        data["players"] = []
    if not isinstance(data["teamStats"].get("goals"), list):
        data["teamStats"]["goals"] = []
    return data


def read_event_log_text(log_path: Path) -> Optional[str]:
    """
    Read the raw event log, or None when it is absent or unreadable.

    The event log is optional: without it the shot summary is left empty.
    """
    if not log_path.exists():
        return None
    try:
        return log_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log_warning(f"Could not read event log {log_path}: {e}")
        return None


def list_incoming_matches(season_id: str, incoming_root: str = "ops/incoming") -> list[str]:
    """Return match ids for every <match>.json in the season's incoming dir, sorted."""
    incoming_dir = Path(incoming_root) / season_id
    if not incoming_dir.exists():
        raise FileNotFoundError(f"Incoming dir not found: {incoming_dir}")

    return sorted(
        p.stem for p in incoming_dir.iterdir()
        if p.is_file() and p.suffix.lower() == ".json"
    )
