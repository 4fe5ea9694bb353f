"""Resolve per-match actor ids (steam ids) to persistent roster keys.

Box-score rows carry the platform id the game reported; the roster is keyed by
player_id and may not know a player's steam id yet. A roster row without a
steam id is bootstrapped from the observed rows only when the match is
unambiguous: a unique roster name, a single id seen for that name, an id not
claimed by another roster player, and an id not seen under a second name.
Anything else is reported as a conflict and left unresolved.
"""

from dataclasses import dataclass, field
from typing import Optional

import pandas as pd

from .log import log_warning

PLAYER_KEY = "player_id"
PLATFORM_ID = "steam_id"


@dataclass(frozen=True)
class BootstrapDecision:
    player_id: str
    name: str
    steam_id: str


@dataclass(frozen=True)
class IdentityConflict:
    name: str
    steam_id: str
    reason: str


@dataclass
class Resolution:
    roster: pd.DataFrame
    key_by_steam_id: dict[str, str]
    decisions: list[BootstrapDecision] = field(default_factory=list)
    conflicts: list[IdentityConflict] = field(default_factory=list)
    unmatched: dict[str, str] = field(default_factory=dict)
    # names of observed rows that carry no steam id at all
    missing_ids: list[str] = field(default_factory=list)

    def resolve(self, steam_id) -> Optional[str]:
        """Roster key for a steam id, or None when unresolved."""
        return self.key_by_steam_id.get(str(steam_id or "").strip())


def norm_name(name) -> str:
    return str(name if name is not None else "").strip().lower()


def _observed_lookups(observed: pd.DataFrame) -> tuple[dict, dict]:
    """Build name -> ids and id -> names from observed rows, in first-seen order."""
    name_to_ids: dict[str, dict[str, None]] = {}
    id_to_names: dict[str, dict[str, None]] = {}
    for sid, name in zip(observed[PLATFORM_ID], observed["player_name"]):
        sid = str(sid).strip()
        nn = norm_name(name)
        if not sid or not nn:
            continue
        name_to_ids.setdefault(nn, {})[sid] = None
        id_to_names.setdefault(sid, {})[nn] = None
    return name_to_ids, id_to_names


def resolve_identities(roster: pd.DataFrame, observed: pd.DataFrame) -> Resolution:
    """
    Map observed steam ids to roster keys, bootstrapping steam ids where safe.

    The input roster is never mutated; bootstrapped ids are written into the
    returned copy and listed in Resolution.decisions.

    Args:
        roster: Roster table with player_id, name and steam_id columns
        observed: Box-score rows with steam_id and player_name columns

    Returns:
        Resolution with the updated roster, id -> key map, bootstrap decisions,
        conflicts, unmatched ids (steam id -> first name seen) and the names of
        rows with no steam id
    """
    if PLAYER_KEY not in roster.columns:
        raise ValueError(f"players table missing required column: {PLAYER_KEY}")

    out = roster.copy()
    if PLATFORM_ID not in out.columns:
        out[PLATFORM_ID] = ""
    if "name" not in out.columns:
        out["name"] = ""

    observed = observed.reindex(columns=[PLATFORM_ID, "player_name"], fill_value="")
    name_to_ids, id_to_names = _observed_lookups(observed)

    roster_by_name: dict[str, list] = {}
    roster_by_id: dict[str, list] = {}
    for idx, name, sid in zip(out.index, out["name"], out[PLATFORM_ID]):
        nn = norm_name(name)
        sid = str(sid).strip()
        if nn:
            roster_by_name.setdefault(nn, []).append(idx)
        if sid:
            roster_by_id.setdefault(sid, []).append(idx)

    resolution = Resolution(roster=out, key_by_steam_id={})

    for sid, holders in roster_by_id.items():
        if len(holders) == 1:
            resolution.key_by_steam_id[sid] = str(out.at[holders[0], PLAYER_KEY])
        else:
            names = ", ".join(str(out.at[i, "name"]) for i in holders)
            resolution.conflicts.append(
                IdentityConflict(names, sid, f"steam id held by {len(holders)} roster rows")
            )

    for idx in out.index:
        if str(out.at[idx, PLATFORM_ID]).strip():
            continue
        decision = _try_bootstrap(
            out, idx, name_to_ids, id_to_names, roster_by_name, roster_by_id, resolution
        )
        if decision is None:
            continue
        out.at[idx, PLATFORM_ID] = decision.steam_id
        roster_by_id[decision.steam_id] = [idx]
        resolution.key_by_steam_id[decision.steam_id] = decision.player_id
        resolution.decisions.append(decision)

    for sid, name in zip(observed[PLATFORM_ID], observed["player_name"]):
        sid = str(sid).strip()
        if not sid:
            label = str(name).strip() or "(unnamed)"
            if label not in resolution.missing_ids:
                resolution.missing_ids.append(label)
        elif sid not in resolution.key_by_steam_id and sid not in resolution.unmatched:
            resolution.unmatched[sid] = str(name)

    # two rows sharing a name report the same conflict
    resolution.conflicts = list(dict.fromkeys(resolution.conflicts))
    for conflict in resolution.conflicts:
        log_warning(
            f"Identity conflict for \"{conflict.name}\" (steam_id={conflict.steam_id}): "
            f"{conflict.reason}. Skipping."
        )

    return resolution


def _try_bootstrap(
    roster: pd.DataFrame,
    idx,
    name_to_ids: dict,
    id_to_names: dict,
    roster_by_name: dict,
    roster_by_id: dict,
    resolution: Resolution,
) -> Optional[BootstrapDecision]:
    """Return a BootstrapDecision for roster row idx, or None (recording any conflict)."""
    name = str(roster.at[idx, "name"])
    nn = norm_name(name)
    if not nn:
        return None

    ids = list(name_to_ids.get(nn, {}))
    if not ids:
        return None
    if len(ids) > 1:
        resolution.conflicts.append(
            IdentityConflict(name, ", ".join(ids), "name seen with multiple steam ids")
        )
        return None
    sid = ids[0]

    same_name = roster_by_name.get(nn, [])
    if len(same_name) != 1:
        resolution.conflicts.append(
            IdentityConflict(name, sid, f"roster has {len(same_name)} rows with this name")
        )
        return None

    holders = roster_by_id.get(sid, [])
    if holders:
        claimed_by = str(roster.at[holders[0], "name"])
        resolution.conflicts.append(
            IdentityConflict(name, sid, f"steam id already assigned to roster name \"{claimed_by}\"")
        )
        return None

    names_seen = list(id_to_names.get(sid, {}))
    if len(names_seen) > 1:
        resolution.conflicts.append(
            IdentityConflict(name, sid, f"steam id seen with multiple names: {', '.join(names_seen)}")
        )
        return None

    return BootstrapDecision(player_id=str(roster.at[idx, PLAYER_KEY]), name=name, steam_id=sid)
