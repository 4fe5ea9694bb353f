"""Shot classification from the raw event stream.

Each on-net or scoring shot is classified by looking at what happened just
before it (saves, touches, passes) and where it was taken from, then paired
with the save/goal row that follows it to recover contact velocity and height.
Classification priority: wrap_bank > rebound > deke > one_timer > shot.
"""

import math
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from .events import EventLogError, EventName, MatchEvent, Outcome, read_event_log
from .log import log_warning

FIELD_SEP = "|"
RECORD_SEP = ";"
PERIOD_LENGTH_S = 300


class ShotType(Enum):
    WRAP_BANK = "wrap_bank"
    REBOUND = "rebound"
    DEKE = "deke"
    ONE_TIMER = "one_timer"
    SHOT = "shot"


class ShotKind(Enum):
    SHOT = "shot"
    BAT = "bat"


class ShotResult(Enum):
    GOAL = "G"
    SAVE = "S"


@dataclass(frozen=True)
class ShotConfig:
    rebound_window_s: float = 1.5
    deke_lookback_s: float = 1.5
    deke_within_net_m: float = 5.0
    deke_min_dx_m: float = 1.0
    one_timer_window_s: float = 1.0
    shot_result_max_dt_s: float = 6.0
    shot_result_lookahead: int = 30
    # goal line z after mirroring
    net_z: float = 39.8
    wrap_bank_behind_line_m: float = 0.0
    save_force_range_m: float = 20.0
    bat_height_m: float = 1.0

    @property
    def buffer_window_s(self) -> float:
        return max(self.deke_lookback_s, self.one_timer_window_s, self.rebound_window_s) + 1.0


DEFAULT_CONFIG = ShotConfig()

# outcome -> (result code, event name that closes the attempt)
_EXPECTED_RESULT = {
    Outcome.ON_NET: (ShotResult.SAVE, EventName.SAVE),
    Outcome.GOAL: (ShotResult.GOAL, EventName.GOAL),
}

_BUFFERED = {EventName.TOUCH, EventName.PASS, EventName.SHOT, EventName.SAVE}


@dataclass(frozen=True)
class ShotRecord:
    shot: MatchEvent
    kind: ShotKind
    shot_type: ShotType
    result: ShotResult
    paired: Optional[MatchEvent]
    contact_velocity: Optional[float]
    contact_height: Optional[float]


def classify_shot(
    recent: Sequence[MatchEvent], shot: MatchEvent, config: ShotConfig = DEFAULT_CONFIG
) -> ShotType:
    """
    Classify one shot against the buffered events that precede it.

    Args:
        recent: Buffered touch/pass/shot/save events before the shot, oldest first
        shot: The shot event
        config: Window and geometry tunables

    Returns:
        The first matching ShotType by priority
    """
    # Behind the goal line: wraparound or bank attempt
    if shot.z is not None and shot.z > config.net_z + config.wrap_bank_behind_line_m:
        return ShotType.WRAP_BANK

    for ev in reversed(recent):
        if shot.t - ev.t > config.rebound_window_s:
            break
        if ev.name is EventName.SAVE:
            return ShotType.REBOUND

    shooter = shot.actor_id
    near_net = shot.z is not None and (config.net_z - shot.z) <= config.deke_within_net_m
    if near_net and shooter and shot.x is not None:
        # keep scanning older touches; the nearest one need not be the lateral move
        for ev in reversed(recent):
            if shot.t - ev.t > config.deke_lookback_s:
                break
            if (
                ev.name is EventName.TOUCH
                and ev.actor_id == shooter
                and ev.x is not None
                and abs(ev.x - shot.x) >= config.deke_min_dx_m
            ):
                return ShotType.DEKE

    if shooter:
        for ev in reversed(recent):
            if shot.t - ev.t > config.one_timer_window_s:
                break
            if (
                ev.name is EventName.PASS
                and ev.outcome is Outcome.SUCCESSFUL
                and ev.actor_id
                and ev.actor_id != shooter
            ):
                return ShotType.ONE_TIMER

    return ShotType.SHOT


def _find_first_after(
    events: Sequence[MatchEvent],
    i_start: int,
    t_start: float,
    max_dt: float,
    predicate: Callable[[MatchEvent], bool],
    config: ShotConfig,
    stop_at_shot: bool = False,
) -> Optional[int]:
    """Index of the first event after i_start matching predicate within max_dt and the lookahead."""
    end = min(len(events), i_start + 1 + config.shot_result_lookahead)
    for j in range(i_start + 1, end):
        ev = events[j]
        if ev.t - t_start > max_dt:
            break
        if stop_at_shot and ev.name is EventName.SHOT:
            break
        if predicate(ev):
            return j
    return None


def find_paired_result(
    events: Sequence[MatchEvent], i_shot: int, expected: EventName, config: ShotConfig = DEFAULT_CONFIG
) -> Optional[MatchEvent]:
    """
    Find the save/goal event that closes the shot at events[i_shot].

    Stops at an intervening shot so two attempts never share a result row.
    """
    shot = events[i_shot]
    j = _find_first_after(
        events,
        i_shot,
        shot.t,
        config.shot_result_max_dt_s,
        lambda ev: ev.name is expected,
        config,
        stop_at_shot=True,
    )
    return events[j] if j is not None else None


def _is_jam_in_rebound(
    events: Sequence[MatchEvent], i_shot: int, goal_t: float, config: ShotConfig
) -> bool:
    """
    True when the shot was saved and the shooter touched the puck again before the goal.

    The touch is searched from the shot onward, timed from the save, so a touch
    logged on the save's tick but ahead of the save row still counts.
    """
    shot = events[i_shot]
    if not shot.actor_id:
        return False

    i_save = _find_first_after(
        events, i_shot, shot.t, config.rebound_window_s,
        lambda ev: ev.name is EventName.SAVE, config,
    )
    if i_save is None or events[i_save].t > goal_t:
        return False

    save = events[i_save]
    i_touch = _find_first_after(
        events, i_shot, save.t, config.shot_result_max_dt_s,
        lambda ev: ev.name is EventName.TOUCH and ev.actor_id == shot.actor_id and ev.t <= goal_t,
        config,
    )
    return i_touch is not None


def _distance_to_net(shot: MatchEvent, config: ShotConfig) -> Optional[float]:
    if shot.x is None or shot.z is None:
        return None
    return math.hypot(shot.x, config.net_z - shot.z)


def classify_shots(
    events: Sequence[MatchEvent], config: ShotConfig = DEFAULT_CONFIG
) -> list[ShotRecord]:
    """
    Classify and pair every on-net or scoring shot in an ordered event stream.

    Args:
        events: MatchEvents ordered by time (see read_event_log)
        config: Window and geometry tunables

    Returns:
        One ShotRecord per qualifying attempt, in event order
    """
    recent: deque = deque()
    records: list[ShotRecord] = []

    for i, ev in enumerate(events):
        # prune the rolling window
        while recent and ev.t - recent[0].t > config.buffer_window_s:
            recent.popleft()

        qualifies = ev.name is EventName.SHOT and ev.outcome in _EXPECTED_RESULT
        if qualifies:
            records.append(_build_record(events, i, recent, config))

        if ev.name in _BUFFERED:
            recent.append(ev)

    return records


def _build_record(
    events: Sequence[MatchEvent], i: int, recent: Sequence[MatchEvent], config: ShotConfig
) -> ShotRecord:
    shot = events[i]
    result, expected = _EXPECTED_RESULT[shot.outcome]
    shot_type = classify_shot(recent, shot, config)
    paired = find_paired_result(events, i, expected, config)

    if result is ShotResult.GOAL:
        goal_t = paired.t if paired is not None else shot.t
        if _is_jam_in_rebound(events, i, goal_t, config):
            shot_type = ShotType.REBOUND

    contact_velocity = paired.velocity if paired is not None else None
    if result is ShotResult.SAVE and shot.force is not None:
        # close-range save telemetry is less trusted than the shot's own force
        distance = _distance_to_net(shot, config)
        if distance is not None and distance <= config.save_force_range_m:
            contact_velocity = shot.force

    kind = ShotKind.BAT if shot.y is not None and shot.y >= config.bat_height_m else ShotKind.SHOT

    return ShotRecord(
        shot=shot,
        kind=kind,
        shot_type=shot_type,
        result=result,
        paired=paired,
        contact_velocity=contact_velocity,
        contact_height=paired.y if paired is not None else None,
    )


def period_stamp(t: float) -> tuple[int, str]:
    """Convert absolute game seconds to (period, 'm:ss' within the period)."""
    t = max(0.0, float(t))
    period = int(t // PERIOD_LENGTH_S) + 1
    in_period = int(t - (period - 1) * PERIOD_LENGTH_S)
    return period, f"{in_period // 60}:{in_period % 60:02d}"


def fmt_num(val: Optional[float]) -> str:
    """Format a number without a trailing '.0'; None formats blank."""
    if val is None:
        return ""
    v = float(val)
    if v.is_integer():
        return str(int(v))
    return repr(v)


def format_shot(record: ShotRecord) -> str:
    """Encode one ShotRecord as a '|'-separated summary record."""
    shot = record.shot
    period, clock = period_stamp(shot.t)
    fields = [
        f"P{period} - {clock}",
        shot.team_label,
        shot.actor_id,
        record.kind.value,
        record.shot_type.value,
        fmt_num(record.contact_velocity),
        fmt_num(record.contact_height),
        fmt_num(shot.x),
        fmt_num(shot.z),
        record.result.value,
    ]
    return FIELD_SEP.join(fields)


def build_shot_summary(log_text: Optional[str], config: ShotConfig = DEFAULT_CONFIG) -> str:
    """
    Build the shot-summary cell for a match from its raw event log.

    A missing or unusable log degrades to an empty summary so the rest of the
    import can proceed.

    Args:
        log_text: Raw event log CSV text, or None when there is no log
        config: Window and geometry tunables

    Returns:
        ';'-joined shot records, or "" when no shots could be derived
    """
    if not log_text:
        return ""

    try:
        events = read_event_log(log_text)
    except EventLogError as e:
        log_warning(f"Shot summary skipped: {e}")
        return ""

    return RECORD_SEP.join(format_shot(r) for r in classify_shots(events, config))
