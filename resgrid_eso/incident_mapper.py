import logging
from typing import Any, Dict, Iterable, Optional

from .records import DerivedIncident, RawActivityEntry, RawDispatchEntry, RawIncident
from .parsers import parse_address, parse_coordinates, parse_dob, parse_name, strip_tags
from .units import first_unit_location, resolve_units
from .timestamps import reconcile_timestamps
from .response_mode import classify_response_mode, priority_label

logger = logging.getLogger("resgrid_eso.mapper")

DEFAULT_OPTIONS = {
    "selected_unit": "",
    "sort_activity": False,
    "normalize_dob": False,
}


def build_description(nature: str, note: str) -> str:
    return f"{nature} - {note}" if note else nature


# incident mapper

def map_incident(
    incident: RawIncident,
    activity: Optional[Iterable[RawActivityEntry]] = None,
    dispatches: Optional[Iterable[RawDispatchEntry]] = None,
    options: Optional[Dict[str, Any]] = None,
) -> DerivedIncident:
    """
    Derive the canonical incident from one call and its extra data.

    Pure: the same inputs always give an equal DerivedIncident, so the XML
    file and the sheet row can each call this and still agree.
    """
    opts = dict(DEFAULT_OPTIONS)
    opts.update(options or {})
    activity = list(activity or [])
    dispatches = list(dispatches or [])

    out: Dict[str, Any] = {}

    # 1 identity and dispatch time
    out["call_id"] = incident.call_id
    out["dispatched_on"] = incident.logged_on
    out["run_number"] = incident.number

    # 2 call type / nature
    out["call_type"] = incident.call_type or incident.name
    out["call_name"] = incident.name
    nature = strip_tags(incident.nature) or strip_tags(incident.name)
    note = strip_tags(incident.note)
    out["nature"] = nature
    out["note"] = note
    out["description"] = build_description(nature, note)

    # 3 units
    out["units"] = resolve_units(activity, dispatches)
    out["unit_location"] = first_unit_location(dispatches)

    # 4 address
    street, city, state, zip_code = parse_address(incident.address)
    out["street"] = street
    out["city"] = city
    out["state"] = state
    out["zip"] = zip_code

    # 5 scene coordinates
    lat, lon = parse_coordinates(incident.geolocation)
    out["latitude"] = lat
    out["longitude"] = lon

    # 6 lifecycle times
    times = reconcile_timestamps(
        activity,
        closed_on=incident.closed_on,
        selected_unit=opts.get("selected_unit") or None,
        sort_by_time=bool(opts.get("sort_activity")),
    )
    out["en_route"] = times.en_route
    out["on_scene"] = times.on_scene
    out["at_patient"] = times.at_patient
    out["cleared"] = times.cleared
    out["back_in_service"] = times.back_in_service

    # 7 response mode, shared by XML and sheet
    out["response_mode"] = classify_response_mode(out["description"], incident.priority_id)
    out["priority_label"] = priority_label(incident.priority_id, incident.priority_name)

    # 8 patient
    first, last = parse_name(incident.contact_name)
    out["patient_first_name"] = first
    out["patient_last_name"] = last
    out["patient_phone"] = incident.contact_info
    out["patient_dob"] = parse_dob(incident.external_id) if opts.get("normalize_dob") else incident.external_id

    logger.debug(
        "Mapped call %s: units=%s response_mode=%s",
        incident.call_id, list(out["units"]), out["response_mode"],
    )
    return DerivedIncident(**out)
