from typing import Iterable, Optional, Tuple

from .records import RawActivityEntry, RawDispatchEntry

NO_UNITS = "No Units"


def resolve_units(activity: Iterable[RawActivityEntry], dispatches: Iterable[RawDispatchEntry]) -> Tuple[str, ...]:
    """Unit names from activity then dispatches, first occurrence wins."""
    activity_units = [a.unit_name for a in activity or [] if a.is_unit and a.unit_name]
    dispatch_units = [d.unit_name for d in dispatches or [] if d.is_unit and d.unit_name]
    return tuple(dict.fromkeys(activity_units + dispatch_units))


def first_unit_location(dispatches: Iterable[RawDispatchEntry]) -> str:
    for d in dispatches or []:
        if d.is_unit and d.location:
            return d.location
    return ""


def units_csv(units: Tuple[str, ...], empty: Optional[str] = "") -> str:
    if not units:
        return empty or ""
    return ", ".join(units)
