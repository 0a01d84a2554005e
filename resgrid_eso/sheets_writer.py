"""
"Call Data" sheet writer.

One row per call, keyed by the Call ID column. The find-then-write
upsert is not atomic: this process must be the only writer of the sheet.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .records import DerivedIncident
from .response_mode import response_mode_label
from .units import NO_UNITS, units_csv

logger = logging.getLogger("resgrid_eso.sheets")

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

CALLS_SHEET_NAME = "Call Data"
CALLS_HEADERS = [
    "Timestamp",
    "Call ID",
    "Call Type",
    "Nature",
    "Note",
    "Address",
    "City",
    "State",
    "Zip",
    "Priority",
    "Response Mode",
    "Unit Name(s)",
    "Unit Location",
    "En Route Time",
    "Arrived Time",
    "At Patient Time",
    "Cleared Time",
    "Back In Service Time",
    "Latitude",
    "Longitude",
    "Patient First Name",
    "Patient Last Name",
    "Contact Info",
    "Patient DOB",
    "CAD #",
    "Last Updated",
]
CALL_ID_COLUMN = CALLS_HEADERS.index("Call ID")

TABLE_ERRORS = (HttpError, httplib2.HttpLib2Error, GoogleAuthError, OSError)


@dataclass
class UpsertResult:
    """Result of one sheet upsert."""
    success: bool
    call_id: str
    action: str  # updated | appended | appended_fallback | failed
    row: Optional[int] = None
    error: Optional[str] = None


class SheetTable(ABC):
    """A named table of rows addressed by 1-based row number."""

    @abstractmethod
    def read_column(self, index: int) -> List[str]:
        """All values of one column, header included."""

    @abstractmethod
    def update_row(self, row_number: int, values: List[str]) -> None:
        pass

    @abstractmethod
    def append_row(self, values: List[str]) -> None:
        pass

    @abstractmethod
    def ensure_headers(self, headers: List[str]) -> None:
        pass


def column_letter(index: int) -> str:
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


class GoogleSheetTable(SheetTable):
    """SheetTable backed by the Google Sheets v4 API."""

    def __init__(self, service: Any, spreadsheet_id: str, sheet_name: str = CALLS_SHEET_NAME,
                 width: int = len(CALLS_HEADERS)):
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.last_column = column_letter(width - 1)

    @classmethod
    def from_config(cls, sheets_cfg: Dict[str, Any]) -> "GoogleSheetTable":
        if sheets_cfg.get("service_account_json"):
            info = json.loads(sheets_cfg["service_account_json"])
            creds = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        else:
            creds = service_account.Credentials.from_service_account_file(
                sheets_cfg["service_account_key_path"], scopes=SCOPES
            )
        service = build("sheets", "v4", credentials=creds, cache_discovery=False)
        return cls(service, sheets_cfg["sheet_id"], sheets_cfg.get("calls_sheet") or CALLS_SHEET_NAME)

    def _range(self, a1: str) -> str:
        return f"'{self.sheet_name}'!{a1}"

    def read_column(self, index: int) -> List[str]:
        col = column_letter(index)
        resp = self.service.spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=self._range(f"{col}:{col}"),
        ).execute()
        return [row[0] if row else "" for row in resp.get("values", [])]

    def update_row(self, row_number: int, values: List[str]) -> None:
        self.service.spreadsheets().values().update(
            spreadsheetId=self.spreadsheet_id,
            range=self._range(f"A{row_number}:{self.last_column}{row_number}"),
            valueInputOption="RAW",
            body={"values": [values]},
        ).execute()

    def append_row(self, values: List[str]) -> None:
        self.service.spreadsheets().values().append(
            spreadsheetId=self.spreadsheet_id,
            range=self._range(f"A:{self.last_column}"),
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [values]},
        ).execute()

    def ensure_headers(self, headers: List[str]) -> None:
        meta = self.service.spreadsheets().get(spreadsheetId=self.spreadsheet_id).execute()
        titles = [s.get("properties", {}).get("title") for s in meta.get("sheets", [])]
        if self.sheet_name in titles:
            return
        self.service.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={"requests": [{"addSheet": {"properties": {"title": self.sheet_name}}}]},
        ).execute()
        self.update_row(1, headers)
        logger.info(f"Created {self.sheet_name} sheet with headers")


# row building

def build_row(incident: DerivedIncident, exported_at: str) -> List[str]:
    return [
        incident.dispatched_on,                      # Timestamp
        incident.call_id,                            # Call ID
        incident.call_type,                          # Call Type
        incident.nature,                             # Nature
        incident.note,                               # Note
        incident.street,                             # Address
        incident.city,                               # City
        incident.state,                              # State
        incident.zip,                                # Zip
        incident.priority_label,                     # Priority
        response_mode_label(incident.response_mode), # Response Mode
        units_csv(incident.units, empty=NO_UNITS),   # Unit Name(s)
        incident.unit_location,                      # Unit Location
        incident.en_route,                           # En Route Time
        incident.on_scene,                           # Arrived Time
        incident.at_patient,                         # At Patient Time
        incident.cleared,                            # Cleared Time
        incident.back_in_service,                    # Back In Service Time
        incident.latitude,                           # Latitude
        incident.longitude,                          # Longitude
        incident.patient_first_name,                 # Patient First Name
        incident.patient_last_name,                  # Patient Last Name
        incident.patient_phone,                      # Contact Info
        incident.patient_dob,                        # Patient DOB
        incident.run_number,                         # CAD #
        exported_at,                                 # Last Updated
    ]


def find_row(call_ids: List[str], call_id: str) -> Optional[int]:
    """1-based sheet row holding call_id, skipping the header row."""
    for i, value in enumerate(call_ids):
        if i == 0:
            continue
        if value == call_id:
            return i + 1
    return None


def upsert_incident(table: SheetTable, incident: DerivedIncident, exported_at: str) -> UpsertResult:
    row = build_row(incident, exported_at)
    call_id = incident.call_id

    try:
        existing = find_row(table.read_column(CALL_ID_COLUMN), call_id)
    except TABLE_ERRORS as e:
        logger.error(f"Error checking sheet for call {call_id}: {e}")
        try:
            table.append_row(row)
        except TABLE_ERRORS as append_err:
            logger.error(f"Fallback append failed for call {call_id}: {append_err}")
            return UpsertResult(False, call_id, "failed", error=str(append_err))
        logger.info(f"Call {call_id} logged to sheet (fallback append)")
        return UpsertResult(True, call_id, "appended_fallback", error=str(e))

    try:
        if existing:
            table.update_row(existing, row)
            logger.info(f"Updated existing call {call_id} in sheet at row {existing}")
            return UpsertResult(True, call_id, "updated", row=existing)
        table.append_row(row)
        logger.info(f"Added new call {call_id} to sheet")
        return UpsertResult(True, call_id, "appended")
    except TABLE_ERRORS as e:
        logger.error(f"Error writing call {call_id} to sheet: {e}")
        return UpsertResult(False, call_id, "failed", row=existing, error=str(e))
