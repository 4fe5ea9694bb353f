"""Match summary row: team counters, score summary and three stars."""

from .events import Team, parse_team, safe_float
from .shots import fmt_num

GAMES_HEADER = [
    "match_id", "home_team_id", "away_team_id", "home_goals", "away_goals", "ot",
    "away_shots", "home_shots", "away_passes", "home_passes", "away_fow", "home_fow",
    "away_fol", "home_fol", "away_hits", "home_hits", "away_takeaways", "home_takeaways",
    "away_turnovers", "home_turnovers", "away_exits", "home_exits", "away_entries",
    "home_entries", "away_touches", "home_touches", "away_possession_s", "home_possession_s",
    "gwg_steam_id", "score_summary", "shot_summary",
    "star1", "star2", "star3",
]

# games.csv stat -> (home/red payload field, away/blue payload field)
TEAM_STAT_FIELDS = {
    "shots": ("redTeamSogs", "blueTeamSogs"),
    "passes": ("redTeamPasses", "blueTeamPasses"),
    "fow": ("redFaceoffsWon", "blueFaceoffsWon"),
    "fol": ("redFaceoffsLost", "blueFaceoffsLost"),
    "takeaways": ("redTakeaways", "blueTakeaways"),
    "turnovers": ("redTurnovers", "blueTurnovers"),
    "exits": ("redDZExits", "blueDZExits"),
    "entries": ("redOZEntries", "blueOZEntries"),
    "possession_s": ("redTeamPossessionTime", "blueTeamPossessionTime"),
}

# games.csv stat -> participant payload field, summed per side
PLAYER_SUM_FIELDS = {
    "hits": "hits",
    "touches": "puckTouches",
}


def _side(raw) -> Team | None:
    try:
        return parse_team(raw)
    except ValueError:
        return None


def _cell(val) -> str:
    """Copy a payload value into a table cell; missing stays blank."""
    if val is None:
        return ""
    return str(val)


def _clock(seconds) -> str:
    """Format seconds as zero-padded MM:SS."""
    sec = max(0, int(safe_float(seconds) or 0))
    return f"{sec // 60:02d}:{sec % 60:02d}"


def count_goals_by_side(goals: list[dict]) -> tuple[int, int]:
    """Return (home/red goals, away/blue goals) from the payload goal list."""
    home = sum(1 for g in goals if _side(g.get("team")) is Team.RED)
    away = sum(1 for g in goals if _side(g.get("team")) is Team.BLUE)
    return home, away


def is_overtime(goals: list[dict]) -> bool:
    """A match went to overtime if any goal was scored in period 4 or later."""
    return any((safe_float(g.get("period")) or 0) >= 4 for g in goals)


def game_winning_scorer(team_stats: dict) -> str:
    """Actor id of the game-winning goal scorer, or blank."""
    for goal in team_stats.get("goals", []):
        if goal.get("gwg") is True:
            return _cell(goal.get("scorer"))
    return _cell(team_stats.get("gwg"))


def build_score_summary(payload: dict) -> str:
    """
    Encode every goal as 'P{period} MM:SS|team|scorer|a1|a2', joined by ';'.

    Actor ids are replaced by participant names when the payload knows them.
    """
    names = {str(p.get("steamId")): p.get("name") for p in payload.get("players", [])}

    def name_or_id(actor_id) -> str:
        if actor_id is None:
            return ""
        key = str(actor_id)
        return names.get(key) or key

    lines = []
    for goal in payload["teamStats"].get("goals", []):
        stamp = f"P{goal.get('period')} {_clock(goal.get('gameTime'))}"
        lines.append("|".join([
            stamp,
            _cell(goal.get("team")),
            name_or_id(goal.get("scorer")),
            name_or_id(goal.get("primaryAssist")),
            name_or_id(goal.get("secondaryAssist")),
        ]))
    return ";".join(lines)


def _sum_side(players: list[dict], team: Team, field: str) -> float:
    return sum(
        safe_float(p.get(field)) or 0
        for p in players
        if _side(p.get("team")) is team
    )


def three_stars(box_rows: list[dict]) -> list[str]:
    """Names of the three highest SP scores in the match (stable on ties)."""
    ranked = sorted(box_rows, key=lambda r: -(safe_float(r.get("sp")) or 0))
    stars = [r.get("player_name", "") for r in ranked[:3]]
    return stars + [""] * (3 - len(stars))


def build_game_row(
    match_id: str,
    payload: dict,
    schedule_row: dict,
    shot_summary: str,
    box_rows: list[dict],
) -> dict:
    """
    Build the games.csv row for one match.

    Args:
        match_id: Match ID
        payload: Match payload
        schedule_row: Schedule row with home_team_id / away_team_id
        shot_summary: Output of shots.build_shot_summary
        box_rows: This match's box-score rows (for three stars)

    Returns:
        Dict of string cells keyed by GAMES_HEADER columns
    """
    team_stats = payload["teamStats"]
    players = payload.get("players", [])
    goals = team_stats.get("goals", [])
    home_goals, away_goals = count_goals_by_side(goals)

    row = {
        "match_id": str(match_id),
        "home_team_id": str(schedule_row.get("home_team_id", "")),
        "away_team_id": str(schedule_row.get("away_team_id", "")),
        "home_goals": str(home_goals),
        "away_goals": str(away_goals),
        "ot": "1" if is_overtime(goals) else "0",
    }

    for stat, (home_field, away_field) in TEAM_STAT_FIELDS.items():
        row[f"home_{stat}"] = _cell(team_stats.get(home_field))
        row[f"away_{stat}"] = _cell(team_stats.get(away_field))

    for stat, field in PLAYER_SUM_FIELDS.items():
        row[f"home_{stat}"] = fmt_num(_sum_side(players, Team.RED, field))
        row[f"away_{stat}"] = fmt_num(_sum_side(players, Team.BLUE, field))

    row["gwg_steam_id"] = game_winning_scorer(team_stats)
    row["score_summary"] = build_score_summary(payload)
    row["shot_summary"] = shot_summary

    for i, name in enumerate(three_stars(box_rows), start=1):
        row[f"star{i}"] = name

    return row
