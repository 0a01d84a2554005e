"""
Unit lifecycle timestamp reconciliation.

Each canonical time is taken from the first activity entry (in source
order) carrying the matching Resgrid status code and a timestamp, with a
fixed fallback cascade per field:

    en_route         5
    on_scene         6
    at_patient       3 -> on_scene
    cleared          8 -> 0/2 -> incident ClosedOn
    back_in_service  8 -> 0/2 -> cleared (only when cleared came from activity)
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from .records import RawActivityEntry

# Resgrid unit status codes
STATUS_AVAILABLE = 0
STATUS_AVAILABLE_ALT = 2
STATUS_COMMITTED = 3
STATUS_OUT_OF_SERVICE = 4
STATUS_RESPONDING = 5
STATUS_ON_SCENE = 6
STATUS_STAGING = 7
STATUS_RETURNING = 8

AVAILABLE_CODES = (STATUS_AVAILABLE, STATUS_AVAILABLE_ALT)


@dataclass(frozen=True)
class UnitTimes:
    en_route: str = ""
    on_scene: str = ""
    at_patient: str = ""
    cleared: str = ""
    back_in_service: str = ""


def first_timestamp(activity: Sequence[RawActivityEntry], codes: Iterable[int]) -> str:
    wanted = set(codes)
    for a in activity:
        if a.status_id in wanted and a.timestamp:
            return a.timestamp
    return ""


def _sort_key(entry: RawActivityEntry) -> datetime:
    try:
        dt = datetime.fromisoformat(entry.timestamp.replace("Z", "+00:00"))
    except ValueError:
        return datetime.max.replace(tzinfo=timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def reconcile_timestamps(
    activity: Iterable[RawActivityEntry],
    closed_on: str = "",
    selected_unit: Optional[str] = None,
    sort_by_time: bool = False,
) -> UnitTimes:
    entries: List[RawActivityEntry] = list(activity or [])
    if selected_unit:
        entries = [a for a in entries if a.unit_name == selected_unit]
    if sort_by_time:
        # stable, so equal timestamps keep source order
        entries = sorted(entries, key=_sort_key)

    en_route = first_timestamp(entries, [STATUS_RESPONDING])
    on_scene = first_timestamp(entries, [STATUS_ON_SCENE])
    at_patient = first_timestamp(entries, [STATUS_COMMITTED]) or on_scene

    returning = first_timestamp(entries, [STATUS_RETURNING])
    available = first_timestamp(entries, AVAILABLE_CODES)

    unit_cleared = returning or available
    cleared = unit_cleared or (closed_on or "")
    # ClosedOn is a call-level time, it never stands in for back in service
    back_in_service = unit_cleared

    return UnitTimes(
        en_route=en_route,
        on_scene=on_scene,
        at_patient=at_patient,
        cleared=cleared,
        back_in_service=back_in_service,
    )
