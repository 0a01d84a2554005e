"""
Canonical record shapes and the single normalization step that turns
Resgrid API payloads into them.

Everything downstream of ``normalize_*`` works on these dataclasses only;
``Data`` envelopes, priority objects and missing keys are resolved here.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

UNIT_ACTOR = "unit"


@dataclass(frozen=True)
class RawIncident:
    call_id: str = ""
    logged_on: str = ""
    name: str = ""
    call_type: str = ""
    nature: str = ""
    note: str = ""
    address: str = ""
    contact_name: str = ""
    contact_info: str = ""
    external_id: str = ""
    priority_id: str = ""
    priority_name: str = ""
    geolocation: str = ""
    closed_on: str = ""
    number: str = ""


@dataclass(frozen=True)
class RawActivityEntry:
    actor_type: str = ""
    unit_name: str = ""
    status_id: Optional[int] = None
    timestamp: str = ""
    status_text: str = ""

    @property
    def is_unit(self) -> bool:
        return self.actor_type.lower() == UNIT_ACTOR


@dataclass(frozen=True)
class RawDispatchEntry:
    actor_type: str = ""
    unit_name: str = ""
    location: str = ""

    @property
    def is_unit(self) -> bool:
        return self.actor_type.lower() == UNIT_ACTOR


@dataclass(frozen=True)
class DerivedIncident:
    call_id: str = ""
    dispatched_on: str = ""
    call_type: str = ""
    call_name: str = ""
    nature: str = ""
    note: str = ""
    description: str = ""
    units: Tuple[str, ...] = field(default_factory=tuple)
    unit_location: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    latitude: str = ""
    longitude: str = ""
    en_route: str = ""
    on_scene: str = ""
    at_patient: str = ""
    cleared: str = ""
    back_in_service: str = ""
    response_mode: str = ""
    priority_label: str = ""
    patient_first_name: str = ""
    patient_last_name: str = ""
    patient_phone: str = ""
    patient_dob: str = ""
    run_number: str = ""


# Helpers

def as_text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, bool):
        return "true" if v else "false"
    return str(v).strip()


def to_status_id(v: Any) -> Optional[int]:
    if v is None or v == "":
        return None
    try:
        return int(str(v).strip())
    except (TypeError, ValueError):
        return None


def unwrap(payload: Any) -> Any:
    """Strip the ``{"Data": ...}`` envelope the v4 API wraps responses in."""
    if isinstance(payload, dict) and "Data" in payload:
        return payload["Data"]
    return payload


# normalization

def normalize_priority(priority: Any) -> Tuple[str, str]:
    """Priority arrives as an int, a string or ``{"Id": .., "Name": ..}``."""
    if isinstance(priority, dict):
        return as_text(priority.get("Id")), as_text(priority.get("Name"))
    return as_text(priority), ""


def normalize_call(payload: Any) -> RawIncident:
    call = unwrap(payload)
    if not isinstance(call, dict):
        return RawIncident()

    priority_id, priority_name = normalize_priority(call.get("Priority"))
    return RawIncident(
        call_id=as_text(call.get("CallId")),
        logged_on=as_text(call.get("LoggedOn") or call.get("LoggedOnUtc")),
        name=as_text(call.get("Name")),
        call_type=as_text(call.get("Type")),
        nature=as_text(call.get("Nature")),
        note=as_text(call.get("Note")),
        address=as_text(call.get("Address")),
        contact_name=as_text(call.get("ContactName")),
        contact_info=as_text(call.get("ContactInfo")),
        external_id=as_text(call.get("ExternalId")),
        priority_id=priority_id,
        priority_name=priority_name,
        geolocation=as_text(call.get("Geolocation")),
        closed_on=as_text(call.get("ClosedOn")),
        number=as_text(call.get("Number")),
    )


def normalize_activity(entries: Any) -> List[RawActivityEntry]:
    out = []
    for a in entries or []:
        if not isinstance(a, dict):
            continue
        out.append(RawActivityEntry(
            actor_type=as_text(a.get("Type")),
            unit_name=as_text(a.get("Name")),
            status_id=to_status_id(a.get("StatusId")),
            timestamp=as_text(a.get("Timestamp")),
            status_text=as_text(a.get("StatusText")),
        ))
    return out


def normalize_dispatches(entries: Any) -> List[RawDispatchEntry]:
    out = []
    for d in entries or []:
        if not isinstance(d, dict):
            continue
        out.append(RawDispatchEntry(
            actor_type=as_text(d.get("Type")),
            unit_name=as_text(d.get("Name")),
            location=as_text(d.get("Location")),
        ))
    return out


def normalize_extra(payload: Any) -> Tuple[List[RawActivityEntry], List[RawDispatchEntry]]:
    extra = unwrap(payload)
    if not isinstance(extra, dict):
        return [], []
    return normalize_activity(extra.get("Activity")), normalize_dispatches(extra.get("Dispatches"))
