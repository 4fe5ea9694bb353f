"""Per-match box-score rows built from the match payload."""

from enum import Enum
from typing import Optional

from .events import Team, parse_team, safe_float
from .shots import fmt_num
from .summary import count_goals_by_side

BOX_HEADER = [
    "match_id", "team_id", "player_name", "steam_id", "position",
    "g", "a", "shots", "passes", "exits", "entries", "hits", "turnovers", "takeaways", "touches",
    "poss_s", "fow", "fol",
    "sa", "ga", "body_sv", "stick_sv", "w", "so",
    "toi_s", "sp",
]

# box-score column -> payload field
COUNTER_FIELDS = {
    "g": "goals",
    "a": "assists",
    "shots": "sog",
    "passes": "passes",
    "exits": "exits",
    "entries": "entries",
    "hits": "hits",
    "turnovers": "turnovers",
    "takeaways": "takeaways",
    "touches": "puckTouches",
    "poss_s": "possessionTimeSeconds",
    "fow": "faceoffWins",
    "fol": "faceoffLosses",
    "sa": "shotsFaced",
    "ga": "goalsAllowed",
    "body_sv": "bodySaves",
    "stick_sv": "stickSaves",
    "toi_s": "timeOnIce",
}

SKATER_WEIGHTS = {
    "goals": 65,
    "assists": 30,
    "sog": 5,
    "passes": 2.5,
    "takeaways": 7.5,
    "turnovers": -5,
    "entries": 1,
    "exits": 1,
    "hits": 2.5,
}
SAVE_WEIGHT = 10
SHUTOUT_BONUS = 100


class Role(Enum):
    SKATER = "skater"
    GOALTENDER = "goaltender"


def num(val) -> float:
    """Numeric value of a payload/table cell; blanks and junk count as 0."""
    v = safe_float(val)
    return v if v is not None else 0.0


def role_for_position(position) -> Role:
    """Goaltender iff the position tag starts with 'G'."""
    pos = str(position if position is not None else "").strip().upper()
    return Role.GOALTENDER if pos.startswith("G") else Role.SKATER


def goalie_saves(player: dict) -> float:
    """Saves from the payload, falling back to body + stick saves."""
    if safe_float(player.get("saves")) is not None:
        return num(player.get("saves"))
    return num(player.get("bodySaves")) + num(player.get("stickSaves"))


def compute_fantasy_score(player: dict, role: Optional[Role] = None) -> float:
    """
    Compute the SP fantasy score for one participant.

    Skater terms always apply; goaltenders additionally score saves and a
    shutout bonus when they allowed no goals.

    Args:
        player: Participant record from the payload
        role: Role override (defaults to the role from player['position'])

    Returns:
        SP score
    """
    if role is None:
        role = role_for_position(player.get("position"))

    sp = sum(num(player.get(field)) * weight for field, weight in SKATER_WEIGHTS.items())
    if role is Role.GOALTENDER:
        sp += goalie_saves(player) * SAVE_WEIGHT
        if num(player.get("goalsAllowed")) == 0:
            sp += SHUTOUT_BONUS
    return sp


def build_boxscore_rows(match_id: str, payload: dict, schedule_row: dict) -> list[dict]:
    """
    Build one box-score row per Red/Blue participant.

    Red maps to the schedule's home team and Blue to the away team.
    Participants on any other team label (spectators) are skipped. Every
    counter is populated for every participant; only the win and shutout
    flags depend on the goaltender role.

    Args:
        match_id: Match ID
        payload: Match payload (see load.read_payload)
        schedule_row: Schedule row with home_team_id / away_team_id

    Returns:
        List of box-score row dicts with string cells in BOX_HEADER columns
    """
    home_goals, away_goals = count_goals_by_side(payload["teamStats"].get("goals", []))
    team_ids = {
        Team.RED: str(schedule_row.get("home_team_id", "")),
        Team.BLUE: str(schedule_row.get("away_team_id", "")),
    }
    won = {
        Team.RED: home_goals > away_goals,
        Team.BLUE: away_goals > home_goals,
    }

    rows = []
    for player in payload.get("players", []):
        try:
            team = parse_team(player.get("team"))
        except ValueError:
            continue
        if team is None:
            continue

        role = role_for_position(player.get("position"))
        goalie = role is Role.GOALTENDER

        row = {
            "match_id": str(match_id),
            "team_id": team_ids[team],
            "player_name": str(player.get("name") or "").strip(),
            "steam_id": str(player.get("steamId") or "").strip(),
            "position": str(player.get("position") or "").strip(),
        }
        for column, field in COUNTER_FIELDS.items():
            row[column] = fmt_num(num(player.get(field)))

        row["w"] = "1" if goalie and won[team] else "0"
        row["so"] = "1" if goalie and num(player.get("goalsAllowed")) == 0 else "0"
        row["sp"] = fmt_num(compute_fantasy_score(player, role))
        rows.append(row)

    return rows
