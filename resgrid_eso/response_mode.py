import re
from typing import Optional

# ESO ResponseModeToScene codes
LIGHTS_AND_SIRENS = "390"
NO_LIGHTS_AND_SIRENS = "395"
DEFAULT_RESPONSE_MODE = LIGHTS_AND_SIRENS

# Resgrid Priority.Id values
PRIORITY_NON_EMERGENT = "1559"
PRIORITY_EMERGENT = "1560"

PRIORITY_TO_MODE = {
    PRIORITY_NON_EMERGENT: NO_LIGHTS_AND_SIRENS,
    PRIORITY_EMERGENT: LIGHTS_AND_SIRENS,
}

MODE_LABELS = {
    LIGHTS_AND_SIRENS: "Lights & Sirens",
    NO_LIGHTS_AND_SIRENS: "No Lights & Sirens",
}

PRIORITY_LABELS = {
    PRIORITY_EMERGENT: "Emergent",
    PRIORITY_NON_EMERGENT: "Non-emergent",
}

NON_EMERGENCY_RE = re.compile(r"non.?emergency|non.?urgent|routine|scheduled", re.IGNORECASE)


def classify_response_mode(text: Optional[str], priority_id: Optional[str]) -> str:
    """Keyword match on the free text wins over the priority mapping."""
    if text and NON_EMERGENCY_RE.search(text):
        return NO_LIGHTS_AND_SIRENS
    return PRIORITY_TO_MODE.get(str(priority_id or "").strip(), DEFAULT_RESPONSE_MODE)


def response_mode_label(code: str) -> str:
    return MODE_LABELS.get(code, MODE_LABELS[DEFAULT_RESPONSE_MODE])


def priority_label(priority_id: str, priority_name: str = "") -> str:
    if priority_name:
        return priority_name
    return PRIORITY_LABELS.get(priority_id, priority_id)
