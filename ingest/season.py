"""Season aggregation: rebuild every roster player's totals from box scores.

Totals are never patched incrementally. Each import folds the full box-score
table again, so re-importing a match (or importing matches out of order)
always converges to the same roster.
"""

import pandas as pd

from .boxscore import Role, role_for_position
from .identity import PLAYER_KEY, PLATFORM_ID, Resolution
from .log import log_warning
from .shots import fmt_num

# Seconds of ice time one normalized "game" represents
RATE_SECONDS = 900

# season column -> box-score column, counted from every row regardless of role
SHARED_COUNTERS = {
    "g": "g",
    "a": "a",
    "shots": "shots",
    "passes": "passes",
    "exits": "exits",
    "entries": "entries",
    "hits": "hits",
    "turnovers": "turnovers",
    "takeaways": "takeaways",
    "touches": "touches",
    "possession_s": "poss_s",
    "sp": "sp",
}
SKATER_COUNTERS = {"fow": "fow", "fol": "fol"}
GOALIE_COUNTERS = {
    "sa": "sa",
    "ga": "ga",
    "body_sv": "body_sv",
    "stick_sv": "stick_sv",
    "wins": "w",
    "so": "so",
}

SEASON_COLUMNS = [
    "gp_s", "gp_g", "g", "a", "pts", "p_per_gp", "sp_per_gp",
    "shots", "passes", "exits", "entries", "hits", "turnovers", "takeaways", "touches",
    "possession_s", "fow", "fol",
    "sa", "ga", "body_sv", "stick_sv", "wins", "so",
    "toi_s", "toi_g", "toi_total", "toi_gp_s", "toi_gp_g", "toi_gp",
    "gaa", "sv_pct", "sp",
]

_TOTAL_COLUMNS = [
    "gp_s", "gp_g", "toi_s", "toi_g", "skater_pts",
    *SHARED_COUNTERS, *SKATER_COUNTERS, *GOALIE_COUNTERS,
]


def _numeric(frame: pd.DataFrame, column: str) -> pd.Series:
    if column not in frame.columns:
        return pd.Series(0.0, index=frame.index)
    return pd.to_numeric(frame[column], errors="coerce").fillna(0.0)


def safe_div(num: pd.Series, den: pd.Series) -> pd.Series:
    """Element-wise num / den with 0 wherever den is not positive."""
    return num.div(den.where(den > 0)).fillna(0.0)


def aggregate_box_rows(box: pd.DataFrame, resolution: Resolution) -> pd.DataFrame:
    """
    Sum box-score rows per resolved roster key, split by role.

    Goaltender rows count toward gp_g, toi_g and the goaltender counters;
    skater rows count toward gp_s, toi_s and faceoffs. Both roles contribute
    the shared counters. Rows whose steam id does not resolve are dropped.

    Args:
        box: Full box-score table (string cells)
        resolution: Identity resolution for the roster

    Returns:
        DataFrame of float totals indexed by roster key
    """
    if box.empty or PLATFORM_ID not in box.columns:
        return pd.DataFrame(columns=_TOTAL_COLUMNS, dtype=float)

    keys = box[PLATFORM_ID].map(resolution.resolve)
    matched = box[keys.notna()]
    keys = keys[keys.notna()]
    if matched.empty:
        return pd.DataFrame(columns=_TOTAL_COLUMNS, dtype=float)

    positions = matched["position"] if "position" in matched.columns else pd.Series("", index=matched.index)
    goalie = positions.map(role_for_position) == Role.GOALTENDER
    skater = ~goalie
    toi = _numeric(matched, "toi_s")

    parts = pd.DataFrame(index=matched.index)
    parts["gp_s"] = skater.astype(float)
    parts["gp_g"] = goalie.astype(float)
    parts["toi_s"] = toi.where(skater, 0.0)
    parts["toi_g"] = toi.where(goalie, 0.0)
    parts["skater_pts"] = (_numeric(matched, "g") + _numeric(matched, "a")).where(skater, 0.0)
    for season_col, box_col in SHARED_COUNTERS.items():
        parts[season_col] = _numeric(matched, box_col)
    for season_col, box_col in SKATER_COUNTERS.items():
        parts[season_col] = _numeric(matched, box_col).where(skater, 0.0)
    for season_col, box_col in GOALIE_COUNTERS.items():
        parts[season_col] = _numeric(matched, box_col).where(goalie, 0.0)

    return parts.groupby(keys.values).sum()


def derive_season_columns(totals: pd.DataFrame) -> pd.DataFrame:
    """
    Compute every season column from raw totals.

    Rates are per 900 seconds of ice time when that role's ice time is
    tracked, else per game of the matching role.
    """
    out = pd.DataFrame(index=totals.index)
    for col in ["gp_s", "gp_g", *SHARED_COUNTERS, *SKATER_COUNTERS, *GOALIE_COUNTERS, "toi_s", "toi_g"]:
        out[col] = totals[col]

    gp_total = out["gp_s"] + out["gp_g"]
    out["toi_total"] = out["toi_s"] + out["toi_g"]
    out["pts"] = out["g"] + out["a"]

    skater_pts = totals["skater_pts"]
    out["p_per_gp"] = safe_div(skater_pts * RATE_SECONDS, out["toi_s"]).where(
        out["toi_s"] > 0, safe_div(skater_pts, out["gp_s"])
    )
    out["sp_per_gp"] = safe_div(out["sp"] * RATE_SECONDS, out["toi_total"]).where(
        out["toi_total"] > 0, safe_div(out["sp"], gp_total)
    )

    out["toi_gp_s"] = safe_div(out["toi_s"], out["gp_s"])
    out["toi_gp_g"] = safe_div(out["toi_g"], out["gp_g"])
    out["toi_gp"] = safe_div(out["toi_total"], gp_total)

    out["gaa"] = safe_div(out["ga"] * RATE_SECONDS, out["toi_g"])
    out["sv_pct"] = safe_div(out["sa"] - out["ga"], out["sa"])

    return out[SEASON_COLUMNS]


def report_unmatched(resolution: Resolution) -> None:
    """Warn once per distinct steam id (and once per blank-id name) excluded from season totals."""
    if resolution.unmatched:
        lines = [f"  - {name} (steam_id={sid})" for sid, name in resolution.unmatched.items()]
        log_warning(
            "Boxscore players not found in players.csv (excluded from season totals):\n"
            + "\n".join(lines)
        )
    if resolution.missing_ids:
        lines = [f"  - {name}" for name in resolution.missing_ids]
        log_warning(
            "Boxscore players without a steam_id (excluded from season totals):\n"
            + "\n".join(lines)
        )


def rebuild_season_totals(
    players_header: list[str], box: pd.DataFrame, resolution: Resolution
) -> tuple[list[str], pd.DataFrame]:
    """
    Rewrite the season columns of every roster row from the full box-score table.

    Roster rows with no resolvable box scores get zeroed totals. Season
    columns missing from the players header are appended to it.

    Args:
        players_header: players.csv header in on-disk order
        box: Full box-score table (string cells), including this match
        resolution: Identity resolution (its roster carries bootstrapped ids)

    Returns:
        Tuple of (players header, rebuilt roster table)
    """
    roster = resolution.roster.copy()
    derived = derive_season_columns(aggregate_box_rows(box, resolution).reindex(columns=_TOTAL_COLUMNS))

    season = derived.reindex(roster[PLAYER_KEY].astype(str)).fillna(0.0)
    for col in SEASON_COLUMNS:
        roster[col] = [fmt_num(v) for v in season[col]]

    header = list(players_header)
    for col in [PLATFORM_ID, *SEASON_COLUMNS]:
        if col not in header:
            header.append(col)

    report_unmatched(resolution)
    return header, roster
