"""Match import entry point: one match (or a season's incoming folder) per run."""

import argparse
import sys
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from .boxscore import BOX_HEADER, build_boxscore_rows
from .identity import BootstrapDecision, IdentityConflict, resolve_identities
from .load import (
    SeasonPaths,
    list_incoming_matches,
    read_event_log_text,
    read_payload,
    require_inputs,
    season_paths,
)
from .log import log_error
from .season import rebuild_season_totals
from .shots import build_shot_summary
from .store import read_table, replace_rows, upsert_by_key, write_tables
from .summary import GAMES_HEADER, build_game_row

SCHEDULE_HEADER = ["match_id", "week", "home_team_id", "away_team_id", "stage", "status", "imported_on"]
FINAL_STATUS = "final"


@dataclass
class TableWrite:
    path: Path
    header: list[str]
    frame: pd.DataFrame


@dataclass
class MatchPlan:
    """Every table change one match import would make, computed before any write."""

    match_id: str
    game_row: dict
    game_action: str
    box_rows: list[dict]
    stamp: str
    decisions: list[BootstrapDecision]
    conflicts: list[IdentityConflict]
    unmatched: dict[str, str]
    tables: dict[str, TableWrite] = field(default_factory=dict)


@dataclass
class ImportResult:
    match_id: str
    applied: bool
    written: dict[str, int]
    box_rows: int
    unmatched: dict[str, str]
    decisions: list[BootstrapDecision]


def _project(row: dict, header: list[str]) -> dict:
    """Restrict a row to the columns the target table actually has."""
    return {c: str(row.get(c, "")) for c in header}


def plan_match_import(paths: SeasonPaths, match_id: str, today: Optional[str] = None) -> MatchPlan:
    """
    Compute the next contents of every table touched by one match import.

    Nothing is written here, so a fatal input error aborts before any table
    changes.

    Args:
        paths: Resolved file locations for the match
        match_id: Match ID
        today: Import stamp as YYYY-MM-DD (defaults to today)

    Returns:
        MatchPlan with the games, boxscores, schedule and players tables

    Raises:
        FileNotFoundError: If the payload, schedule or roster file is missing
        ValueError: If the match is not scheduled or the roster has no header
    """
    require_inputs(paths)
    stamp = today or datetime.now().strftime("%Y-%m-%d")

    schedule_header, schedule = read_table(paths.schedule, SCHEDULE_HEADER)
    if "match_id" in schedule.columns:
        sched_rows = schedule[schedule["match_id"].astype(str) == str(match_id)]
    else:
        sched_rows = schedule.iloc[0:0]
    if sched_rows.empty:
        raise ValueError(f"match_id {match_id} not found in {paths.schedule}")
    sched = sched_rows.iloc[0].to_dict()

    players_header, roster = read_table(paths.players)
    if not players_header:
        raise ValueError(f"players.csv header missing: {paths.players}")

    payload = read_payload(paths.payload)
    shot_summary = build_shot_summary(read_event_log_text(paths.event_log))

    # 1. Box scores: replace this match's rows (safe re-import)
    box_header, box = read_table(paths.boxscores, BOX_HEADER)
    box_rows = [_project(r, box_header) for r in build_boxscore_rows(match_id, payload, sched)]
    box_all = replace_rows(box, "match_id", match_id, box_rows)

    # 2. Season totals rebuilt from every box-score row
    resolution = resolve_identities(roster, box_all)
    players_header, players_out = rebuild_season_totals(players_header, box_all, resolution)

    # 3. Match summary row
    games_header, games = read_table(paths.games, GAMES_HEADER)
    game_row = _project(build_game_row(match_id, payload, sched, shot_summary, box_rows), games_header)
    games_out, game_action = upsert_by_key(games, "match_id", match_id, game_row)

    # 4. Schedule: flip to final
    for col in ("status", "imported_on"):
        if col not in schedule_header:
            schedule_header.append(col)
    schedule_out, _ = upsert_by_key(
        schedule, "match_id", match_id, {"match_id": match_id, "status": FINAL_STATUS, "imported_on": stamp}
    )

    plan = MatchPlan(
        match_id=match_id,
        game_row=game_row,
        game_action=game_action,
        box_rows=box_rows,
        stamp=stamp,
        decisions=resolution.decisions,
        conflicts=resolution.conflicts,
        unmatched=resolution.unmatched,
    )
    plan.tables = {
        "games": TableWrite(paths.games, games_header, games_out),
        "boxscores": TableWrite(paths.boxscores, box_header, box_all),
        "schedule": TableWrite(paths.schedule, schedule_header, schedule_out),
        "players": TableWrite(paths.players, players_header, players_out),
    }
    return plan


def apply_match_import(plan: MatchPlan) -> dict[str, int]:
    """Write every planned table as one unit; returns rows written per table."""
    write_tables([(t.path, t.header, t.frame) for t in plan.tables.values()])
    return {name: len(t.frame) for name, t in plan.tables.items()}


def _print_plan(plan: MatchPlan, apply: bool) -> None:
    row = plan.game_row
    print("\n==============================")
    print(f"Mode: {'APPLY' if apply else 'DRY RUN'}")
    print(f"Match: {plan.match_id}")
    print(f"Score: {row.get('home_goals', '')} - {row.get('away_goals', '')} OT: {row.get('ot', '')}")
    print(f"Games row: {plan.game_action}")
    print(f"Schedule -> status={FINAL_STATUS}, imported_on={plan.stamp}")
    print(f"Boxscore rows: {len(plan.box_rows)}")
    for decision in plan.decisions:
        print(f"  Bootstrap steam_id {decision.steam_id} -> {decision.name} (player_id={decision.player_id})")
    if not apply and plan.box_rows:
        print(pd.DataFrame(plan.box_rows).to_string(index=False))


def import_match(
    season_id: str,
    match_id: str,
    data_root: str = "data",
    incoming_root: str = "ops/incoming",
    apply: bool = False,
    today: Optional[str] = None,
) -> ImportResult:
    """
    Import one match: dry run by default, persist every table with apply=True.

    Args:
        season_id: Season identifier
        match_id: Match identifier
        data_root: Base directory of the season tables
        incoming_root: Base directory of the incoming payloads and logs
        apply: Persist the computed tables (default False)
        today: Import stamp as YYYY-MM-DD (defaults to today)

    Returns:
        ImportResult describing what was (or would be) written
    """
    paths = season_paths(season_id, match_id, data_root, incoming_root)
    plan = plan_match_import(paths, match_id, today=today)
    _print_plan(plan, apply)

    if not apply:
        print("Dry run complete. No files modified.")
        return ImportResult(match_id, False, {}, len(plan.box_rows), plan.unmatched, plan.decisions)

    written = apply_match_import(plan)
    for name, count in written.items():
        print(f"  wrote {name}: {count} rows")
    print("Done.")
    return ImportResult(match_id, True, written, len(plan.box_rows), plan.unmatched, plan.decisions)


def main(
    season: str,
    match: Optional[str] = None,
    all_matches: bool = False,
    data_root: str = "data",
    incoming_root: str = "ops/incoming",
    apply: bool = False,
    today: Optional[str] = None,
) -> int:
    """
    Run the importer for one match or every incoming match of a season.

    Args:
        season: Season identifier (e.g. "S2")
        match: Match identifier for a single-match run
        all_matches: Import every <match>.json in the season's incoming dir
        data_root: Base directory of the season tables (default "data")
        incoming_root: Base directory of incoming files (default "ops/incoming")
        apply: Persist changes; otherwise dry run
        today: Import stamp override as YYYY-MM-DD

    Returns:
        Process exit status (0 on success)
    """
    print(f"Running importer for season {season} ({'APPLY' if apply else 'DRY RUN'})")

    if not all_matches:
        try:
            import_match(season, match, data_root, incoming_root, apply=apply, today=today)
        except (FileNotFoundError, ValueError) as e:
            log_error(str(e))
            return 1
        return 0

    try:
        matches = list_incoming_matches(season, incoming_root)
    except FileNotFoundError as e:
        log_error(str(e))
        return 1
    if not matches:
        log_error(f"No .json files found in: {Path(incoming_root) / season}")
        return 1

    print(f"Found matches: {len(matches)}")

    applied = 0
    failed = 0
    for match_id in matches:
        try:
            result = import_match(season, match_id, data_root, incoming_root, apply=apply, today=today)
            if result.applied:
                applied += 1
        except Exception as e:
            log_error(f"Error importing match {match_id}: {e}")
            traceback.print_exc()
            failed += 1

    print("\n==============================")
    print(f"Season: {season}")
    print(f"Matches processed: {len(matches)}")
    print(f"Matches applied: {applied}")
    print(f"Matches failed: {failed}")
    return 1 if failed else 0


def cli(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Import match payloads into season tables")
    parser.add_argument("--season", "-s", required=True, help="Season id (example: S2)")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--match", "-m", help="Match id (example: M1-G1)")
    target.add_argument(
        "--all",
        action="store_true",
        dest="all_matches",
        help="Import every <match>.json in the season's incoming dir",
    )
    parser.add_argument(
        "--data-root",
        type=str,
        default="data",
        help="Base directory holding <season>/*.csv tables (default: data)",
    )
    parser.add_argument(
        "--incoming-root",
        type=str,
        default="ops/incoming",
        help="Base directory holding <season>/<match>.json/.csv (default: ops/incoming)",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Write the computed tables (default is a dry run)",
    )

    args = parser.parse_args(argv)
    sys.exit(
        main(
            season=args.season,
            match=args.match,
            all_matches=args.all_matches,
            data_root=args.data_root,
            incoming_root=args.incoming_root,
            apply=args.apply,
        )
    )


if __name__ == "__main__":
    cli()
