"""Raw event log reader and coordinate normalization.

The game log is a per-tick CSV export. Each accepted row becomes an immutable
MatchEvent whose (x, z) position is already mirrored onto the shared attacking
frame, so downstream code never has to care which side a team defends.
"""

import io
import math
import re
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import pandas as pd

from .log import log_warning

REQUIRED_COLUMNS = [
    "name",
    "outcome",
    "xCoord",
    "yCoord",
    "zCoord",
    "PuckVelocity",
    "forcemagnitude",
    "period",
    "gameTime",
    "team",
    "playerReferenceSteamID",
]

# Excel-safe id export: ="76561198000000000"
_EXCEL_WRAPPED = re.compile(r'^="\s*(.*?)"\s*$')


class EventLogError(ValueError):
    """Raised when an event log is not a usable game log."""


class EventName(Enum):
    TOUCH = "touch"
    PASS = "pass"
    SHOT = "shot"
    SAVE = "save"
    GOAL = "goal"
    BLOCK = "block"
    HIT = "hit"
    FACEOFF = "faceoff"
    TAKEAWAY = "takeaway"
    TURNOVER = "turnover"


class Outcome(Enum):
    NONE = ""
    ON_NET = "on net"
    GOAL = "goal"
    MISSED = "missed"
    BLOCKED = "blocked"
    SUCCESSFUL = "successful"


# Event names whose handling reads the outcome; an unknown outcome rejects
# these rows and is cleared to Outcome.NONE on every other name.
OUTCOME_READERS = frozenset({EventName.SHOT, EventName.PASS})


class Team(Enum):
    """Team A (Red, home) keeps its frame; team B (Blue, away) is mirrored."""

    RED = "red"
    BLUE = "blue"


@dataclass(frozen=True)
class MatchEvent:
    index: int
    t: float
    period: Optional[int]
    name: EventName
    outcome: Outcome
    team: Optional[Team]
    team_label: str
    actor_id: str
    x: Optional[float]
    z: Optional[float]
    y: Optional[float]
    velocity: Optional[float]
    force: Optional[float]


def safe_float(val) -> Optional[float]:
    """Parse a finite float, or None for blanks, junk, NaN and infinities."""
    if val is None:
        return None
    s = str(val).strip()
    if s == "":
        return None
    try:
        v = float(s)
    except ValueError:
        return None
    return v if math.isfinite(v) else None


def normalize_actor_id(raw) -> str:
    """Strip whitespace and an Excel-safe ="..." wrapper from an actor id."""
    s = str(raw if raw is not None else "").strip()
    m = _EXCEL_WRAPPED.match(s)
    return m.group(1).strip() if m else s


def parse_team(raw) -> Optional[Team]:
    """Map a team label to Team; blank is None, anything else unknown raises ValueError."""
    s = str(raw if raw is not None else "").strip().lower()
    if s == "":
        return None
    return Team(s)


def mirror_coords(x_raw, z_raw, team: Optional[Team]) -> tuple[Optional[float], Optional[float]]:
    """
    Mirror a position so both teams attack the same net.

    Team B positions map (x, z) -> (-x, -z); team A and unknown teams are
    unchanged. A non-finite coordinate makes the whole position unavailable
    (None, None) rather than defaulting to zero, which is a legal position.
    """
    x = safe_float(x_raw)
    z = safe_float(z_raw)
    if x is None or z is None:
        return None, None

    if team is Team.BLUE:
        return -x, -z
    return x, z


def _strip_preamble(text: str) -> str:
    """Drop a UTF-8 BOM and a leading Excel 'sep=,' hint line."""
    text = text.lstrip("\ufeff")
    lines = text.splitlines()
    if lines and lines[0].strip().lower().startswith("sep="):
        lines = lines[1:]
    return "\n".join(lines)


def read_event_log(text: str) -> list[MatchEvent]:
    """
    Parse raw game-log CSV text into ordered MatchEvents.

    Rows without a finite gameTime are skipped. Rows whose event name or team
    is outside the known vocabulary are rejected, as are shot and pass rows
    with an unknown outcome. Other rows keep their event with the outcome
    cleared to Outcome.NONE. Both are counted in a single warning line.

    Args:
        text: Raw CSV text of the game log

    Returns:
        Events ordered by time, ties broken by log order

    Raises:
        EventLogError: If the text is not parseable CSV or lacks a required column
    """
    body = _strip_preamble(text or "")
    if not body.strip():
        return []

    try:
        frame = pd.read_csv(
            io.StringIO(body), dtype=str, keep_default_na=False, skip_blank_lines=True
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise EventLogError(f"event log is not valid CSV: {e}") from e

    frame.columns = [str(c).strip() for c in frame.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if missing:
        raise EventLogError(f"event log missing required columns: {missing}")

    events: list[MatchEvent] = []
    rejected: Counter = Counter()
    cleared: Counter = Counter()

    for index, row in enumerate(frame.to_dict("records")):
        t = safe_float(row["gameTime"])
        if t is None:
            continue

        try:
            name = EventName(str(row["name"]).strip().lower())
        except ValueError:
            rejected[f"name={str(row['name']).strip()!r}"] += 1
            continue
        try:
            outcome = Outcome(str(row["outcome"]).strip().lower())
        except ValueError:
            reason = f"{name.value} outcome={str(row['outcome']).strip()!r}"
            if name in OUTCOME_READERS:
                rejected[reason] += 1
                continue
            cleared[reason] += 1
            outcome = Outcome.NONE
        try:
            team = parse_team(row["team"])
        except ValueError:
            rejected[f"team={str(row['team']).strip()!r}"] += 1
            continue

        x, z = mirror_coords(row["xCoord"], row["zCoord"], team)
        period = safe_float(row["period"])

        events.append(
            MatchEvent(
                index=index,
                t=t,
                period=int(period) if period is not None else None,
                name=name,
                outcome=outcome,
                team=team,
                team_label=str(row["team"]).strip(),
                actor_id=normalize_actor_id(row["playerReferenceSteamID"]),
                x=x,
                z=z,
                y=safe_float(row["yCoord"]),
                velocity=safe_float(row["PuckVelocity"]),
                force=safe_float(row["forcemagnitude"]),
            )
        )

    problems = []
    if rejected:
        detail = ", ".join(f"{reason} x{count}" for reason, count in rejected.most_common(5))
        problems.append(f"rejected {sum(rejected.values())} rows ({detail})")
    if cleared:
        detail = ", ".join(f"{reason} x{count}" for reason, count in cleared.most_common(5))
        problems.append(f"ignored {sum(cleared.values())} unknown outcomes ({detail})")
    if problems:
        log_warning("Event log: " + "; ".join(problems))

    events.sort(key=lambda e: (e.t, e.index))
    return events
