import re
from typing import List, Tuple
from xml.sax.saxutils import escape

from .config import ESO_GUID
from .records import DerivedIncident
from .units import units_csv

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
ROOT_TAG = "CadIncident"

_ENTITIES = {'"': "&quot;", "'": "&apos;"}

# characters XML 1.0 cannot carry, even escaped
_ILLEGAL_XML_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")

# ESO CadIncident element -> DerivedIncident attribute, in document order
FIELD_ORDER: List[Tuple[str, str]] = [
    ("IncidentNumber", "call_id"),
    ("IncidentOrOnset", "dispatched_on"),
    ("DispatchNotified", "dispatched_on"),
    ("IncidentAddress1", "street"),
    ("IncidentCity", "city"),
    ("IncidentState", "state"),
    ("IncidentZip", "zip"),
    ("CadDispatchText", "nature"),
    ("EmsUnitCallSign", "units"),
    ("UnitNotifiedByDispatch", "dispatched_on"),
    ("ResponseModeToScene", "response_mode"),
    ("CallNature", "call_name"),
    ("CallNatureDescription", "description"),
    ("UnitEnRoute", "en_route"),
    ("UnitArrivedOnScene", "on_scene"),
    ("UnitAtPatient", "at_patient"),
    ("UnitCleared", "cleared"),
    ("UnitBackInService", "back_in_service"),
    ("SceneGpsLocationLat", "latitude"),
    ("SceneGpsLocationLong", "longitude"),
    ("PatientFirstName", "patient_first_name"),
    ("PatientLastName", "patient_last_name"),
    ("PatientDOB", "patient_dob"),
]


def xml_escape(value: str) -> str:
    return escape(_ILLEGAL_XML_RE.sub("", value or ""), _ENTITIES)


def element(tag: str, value: str) -> str:
    if not value:
        return f"  <{tag}/>"
    return f"  <{tag}>{xml_escape(value)}</{tag}>"


def field_value(incident: DerivedIncident, attr: str) -> str:
    if attr == "units":
        # machine output: no "No Units" marker
        return units_csv(incident.units)
    return getattr(incident, attr) or ""


def render_xml(incident: DerivedIncident, include_guid: bool = False) -> bytes:
    lines = [XML_DECLARATION, f"<{ROOT_TAG}>"]
    if include_guid:
        lines.append(element("Guid", ESO_GUID))
    for tag, attr in FIELD_ORDER:
        lines.append(element(tag, field_value(incident, attr)))
    lines.append(f"</{ROOT_TAG}>")
    return ("\n".join(lines) + "\n").encode("utf-8")


def remote_file_name(call_id: str, naming: str = "incident", exported_ms: int = 0) -> str:
    if naming == "timestamped":
        return f"call_{call_id}_{exported_ms}.xml"
    return f"incident_{call_id}.xml"
