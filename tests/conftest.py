"""Shared test fixtures for match payloads, season tables and event logs."""

import json
import tempfile
from pathlib import Path

import pytest

ROSTER_CSV = """player_id,name,steam_id,team_id,position,gp_s,g
P1,Alice,101,T1,C,0,0
P2,Bob,,T1,LW,0,0
P3,Gus,103,T1,G,0,0
P4,Cara,201,T2,RW,0,0
P5,Nobody,,T2,D,0,0
"""

SCHEDULE_CSV = """match_id,week,home_team_id,away_team_id,stage,status,imported_on
M1-G1,1,T1,T2,regular,scheduled,
M1-G2,1,T2,T1,regular,scheduled,
"""

EVENT_LOG_HEADER = (
    "name,outcome,xCoord,yCoord,zCoord,PuckVelocity,forcemagnitude,"
    "period,gameTime,team,playerReferenceSteamID"
)


@pytest.fixture
def sample_payload() -> dict:
    """Match payload: Red (home) beats Blue (away) 2-1, plus one spectator."""
    return {
        "teamStats": {
            "redTeamSogs": 12,
            "blueTeamSogs": 9,
            "redTeamPasses": 40,
            "blueTeamPasses": 35,
            "redFaceoffsWon": 6,
            "blueFaceoffsWon": 4,
            "redFaceoffsLost": 4,
            "blueFaceoffsLost": 6,
            "redTakeaways": 5,
            "blueTakeaways": 3,
            "redTurnovers": 4,
            "blueTurnovers": 7,
            "redDZExits": 8,
            "blueDZExits": 6,
            "redOZEntries": 9,
            "blueOZEntries": 5,
            "redTeamPossessionTime": 410,
            "blueTeamPossessionTime": 350,
            "goals": [
                {"period": 1, "gameTime": 65, "team": "Red", "scorer": 101,
                 "primaryAssist": 102, "secondaryAssist": None, "gwg": False},
                {"period": 2, "gameTime": 412, "team": "Blue", "scorer": 201,
                 "primaryAssist": None, "secondaryAssist": None, "gwg": False},
                {"period": 3, "gameTime": 700, "team": "Red", "scorer": 102,
                 "primaryAssist": 101, "secondaryAssist": 103, "gwg": True},
            ],
        },
        "players": [
            {"steamId": 101, "name": "Alice", "team": "Red", "position": "C",
             "goals": 1, "assists": 1, "sog": 4, "passes": 10, "exits": 2, "entries": 3,
             "hits": 1, "turnovers": 1, "takeaways": 2, "puckTouches": 30,
             "possessionTimeSeconds": 60, "faceoffWins": 6, "faceoffLosses": 4, "timeOnIce": 900},
            {"steamId": 102, "name": "Bob", "team": "Red", "position": "LW",
             "goals": 1, "assists": 1, "sog": 3, "passes": 8, "exits": 1, "entries": 2,
             "hits": 2, "turnovers": 0, "takeaways": 1, "puckTouches": 25,
             "possessionTimeSeconds": 45, "timeOnIce": 900},
            {"steamId": 103, "name": "Gus", "team": "Red", "position": "G",
             "assists": 1, "passes": 2, "shotsFaced": 9, "goalsAllowed": 1, "saves": 8,
             "bodySaves": 5, "stickSaves": 3, "timeOnIce": 900},
            {"steamId": 201, "name": "Cara", "team": "Blue", "position": "RW",
             "goals": 1, "sog": 5, "passes": 12, "hits": 3, "turnovers": 2, "takeaways": 1,
             "puckTouches": 28, "timeOnIce": 900},
            {"steamId": 202, "name": "Dale", "team": "Blue", "position": "G",
             "shotsFaced": 12, "goalsAllowed": 2, "saves": 10, "bodySaves": 6,
             "stickSaves": 4, "timeOnIce": 900},
            {"steamId": 999, "name": "Spec", "team": "Spectator", "position": ""},
        ],
    }


@pytest.fixture
def sample_schedule_row() -> dict:
    return {"match_id": "M1-G1", "home_team_id": "T1", "away_team_id": "T2"}


@pytest.fixture
def sample_event_log() -> str:
    """Game log with one saved Red shot from range and one Blue one-timer goal."""
    rows = [
        EVENT_LOG_HEADER,
        "touch,,1.0,0.0,5.0,,,1,60.0,Red,101",
        "shot,on net,1.5,0.2,10.0,,18.0,1,65.0,Red,101",
        "save,,0.0,0.25,39.5,20.5,,1,65.5,Blue,202",
        "pass,successful,2.0,0.0,-20.0,,,2,411.5,Blue,203",
        "shot,goal,1.0,0.1,-30.0,,25.0,2,412.0,Blue,201",
        "goal,,0.0,0.4,-39.8,31.25,,2,412.3,Blue,201",
    ]
    return "\n".join(rows) + "\n"


@pytest.fixture
def season_root(sample_payload, sample_event_log):
    """
    Temporary data/incoming roots for season S1 with roster, schedule and
    the M1-G1 payload and event log in place.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        data_root = Path(tmpdir) / "data"
        incoming_root = Path(tmpdir) / "incoming"
        (data_root / "S1").mkdir(parents=True)
        (incoming_root / "S1").mkdir(parents=True)

        (data_root / "S1" / "players.csv").write_text(ROSTER_CSV)
        (data_root / "S1" / "schedule.csv").write_text(SCHEDULE_CSV)
        (incoming_root / "S1" / "M1-G1.json").write_text(json.dumps(sample_payload))
        (incoming_root / "S1" / "M1-G1.csv").write_text(sample_event_log)

        yield {"data_root": str(data_root), "incoming_root": str(incoming_root)}
