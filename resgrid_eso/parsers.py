import re
from datetime import datetime
from typing import Tuple

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")

DOB_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y", "%Y/%m/%d")


def clean_address(text: str) -> str:
    return (text or "").replace("\r", "").replace("\n", "").strip()


def parse_address(text: str) -> Tuple[str, str, str, str]:
    """
    Split "<street>, <city>, <state> <zip>[, <country>]".
    Returns (street, city, state, zip); anything short of three comma
    segments keeps the whole cleaned string as the street.
    """
    cleaned = clean_address(text)
    if not cleaned:
        return "", "", "", ""

    parts = [p.strip() for p in cleaned.split(",")]
    if len(parts) < 3:
        return cleaned, "", "", ""

    state_zip = parts[2].split()
    state = state_zip[0] if len(state_zip) > 0 else ""
    zip_code = state_zip[1] if len(state_zip) > 1 else ""
    return parts[0], parts[1], state, zip_code


def parse_name(text: str) -> Tuple[str, str]:
    tokens = (text or "").split()
    if not tokens:
        return "", ""
    return tokens[0], " ".join(tokens[1:])


def parse_coordinates(text: str) -> Tuple[str, str]:
    parts = (text or "").split(",")
    if len(parts) != 2:
        return "", ""
    return parts[0].strip(), parts[1].strip()


def strip_tags(text: str) -> str:
    # nature/note come back from Resgrid as HTML fragments
    return _WS_RE.sub(" ", _TAG_RE.sub(" ", text or "")).strip()


def parse_dob(text: str) -> str:
    """YYYY-MM-DD from an ISO or US-style date, empty when it is not a date."""
    value = (text or "").strip()
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        pass
    for fmt in DOB_FORMATS:
        try:
            return datetime.strptime(value, fmt).date().isoformat()
        except ValueError:
            continue
    return ""
