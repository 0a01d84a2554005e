import logging
import posixpath
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from .errors import SourceError
from .incident_mapper import map_incident
from .records import DerivedIncident, RawActivityEntry, RawDispatchEntry, RawIncident
from .sftp_delivery import Deliverer, DeliveryResult
from .sheets_writer import SheetTable, UpsertResult, upsert_incident
from .xml_writer import remote_file_name, render_xml

logger = logging.getLogger("resgrid_eso.bridge")


class IncidentSource(Protocol):
    def fetch_recent(self, days_back: int = 7) -> List[RawIncident]: ...

    def fetch_call(self, call_id: str) -> RawIncident: ...

    def fetch_extra(self, call_id: str) -> Tuple[List[RawActivityEntry], List[RawDispatchEntry]]: ...


@dataclass
class IncidentOutcome:
    call_id: str
    success: bool
    delivery: Optional[DeliveryResult] = None
    upsert: Optional[UpsertResult] = None
    local_path: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BatchSummary:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    outcomes: List[IncidentOutcome] = field(default_factory=list)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BridgeSession:
    """
    Everything one ingestion run shares: the source client (with its token
    state), the deliverer (with its fingerprint cache), the sheet table and
    the mapping options. One instance per process.
    """

    def __init__(
        self,
        source: IncidentSource,
        deliverer: Optional[Deliverer] = None,
        table: Optional[SheetTable] = None,
        mapping: Optional[Dict[str, Any]] = None,
        remote_dir: str = "/incoming",
        file_naming: str = "incident",
        work_dir: str = "./out",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.source = source
        self.deliverer = deliverer
        self.table = table
        self.mapping = dict(mapping or {})
        self.remote_dir = remote_dir
        self.file_naming = file_naming
        self.work_dir = Path(work_dir)
        self.clock = clock

    def derive(self, incident: RawIncident, activity, dispatches) -> DerivedIncident:
        return map_incident(incident, activity, dispatches, {
            "selected_unit": self.mapping.get("selected_unit", ""),
            "sort_activity": self.mapping.get("sort_activity", False),
            "normalize_dob": self.mapping.get("normalize_dob", False),
        })

    def render(self, derived: DerivedIncident) -> bytes:
        return render_xml(derived, include_guid=bool(self.mapping.get("include_guid")))

    def _write_local(self, name: str, content: bytes) -> str:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        path = self.work_dir / name
        tmp = path.with_suffix(".xml.tmp")
        tmp.write_bytes(content)
        tmp.replace(path)
        return str(path)

    def process_incident(self, incident: RawIncident) -> IncidentOutcome:
        call_id = incident.call_id
        if not call_id:
            logger.error("Skipping call with no CallId")
            return IncidentOutcome(call_id, False, error="missing CallId")

        logger.info(f"Processing call {call_id}...")
        try:
            activity, dispatches = self.source.fetch_extra(call_id)
        except SourceError as e:
            logger.error(f"Failed to fetch extra data for call {call_id}: {e}")
            return IncidentOutcome(call_id, False, error=str(e))

        derived = self.derive(incident, activity, dispatches)
        exported = self.clock()
        outcome = IncidentOutcome(call_id, True)

        # sheet and XML are independent sinks
        if self.table is not None:
            try:
                outcome.upsert = upsert_incident(self.table, derived, exported.isoformat())
            except Exception as e:
                logger.exception(f"Unhandled error logging call {call_id} to sheet: {e}")
                outcome.upsert = UpsertResult(False, call_id, "failed", error=str(e))
            if not outcome.upsert.success:
                outcome.success = False

        content = self.render(derived)
        name = remote_file_name(call_id, self.file_naming, int(exported.timestamp() * 1000))
        logger.info(f"Generated XML for call {call_id} ({len(content)} bytes)")

        if self.deliverer is not None:
            remote_path = posixpath.join(self.remote_dir, name)
            try:
                outcome.delivery = self.deliverer.deliver(content, remote_path, source_id=f"incident_{call_id}")
            except Exception as e:
                logger.exception(f"Unhandled error delivering call {call_id}: {e}")
                outcome.delivery = DeliveryResult(False, "failed", remote_path, error=str(e))
            if not outcome.delivery.success:
                outcome.success = False
                outcome.error = outcome.delivery.error
        else:
            try:
                outcome.local_path = self._write_local(name, content)
                logger.info(f"SFTP not configured, XML saved to {outcome.local_path}")
            except OSError as e:
                logger.error(f"Failed to write XML for call {call_id} to {self.work_dir}: {e}")
                outcome.success = False
                outcome.error = str(e)

        if outcome.upsert is not None and not outcome.upsert.success and not outcome.error:
            outcome.error = outcome.upsert.error
        return outcome

    def handle_call_added(self, call_id: str) -> IncidentOutcome:
        logger.info(f"New call notification: {call_id}")
        try:
            incident = self.source.fetch_call(call_id)
        except SourceError as e:
            logger.error(f"Failed to fetch call {call_id}: {e}")
            return IncidentOutcome(call_id, False, error=str(e))
        if not incident.call_id:
            # fall back to the notified id
            incident = replace(incident, call_id=call_id)
        return self.process_incident(incident)

    def clear_fingerprints(self, source_id: Optional[str] = None) -> int:
        if self.deliverer is None:
            return 0
        return self.deliverer.clear_fingerprints(source_id)


def run_batch(session: BridgeSession, days_back: int = 7) -> BatchSummary:
    """Process recent calls one at a time; a failed call never stops the batch."""
    calls = session.source.fetch_recent(days_back)
    summary = BatchSummary(total=len(calls))
    if not calls:
        logger.info("No calls found for processing")
        return summary

    logger.info(f"Processing {len(calls)} calls...")
    for call in calls:
        try:
            outcome = session.process_incident(call)
        except Exception as e:
            logger.exception(f"Unhandled error processing call {call.call_id}: {e}")
            outcome = IncidentOutcome(call.call_id, False, error=str(e))
        summary.outcomes.append(outcome)
        if outcome.success:
            summary.succeeded += 1
        else:
            summary.failed += 1
            logger.warning(f"Call {outcome.call_id} failed: {outcome.error}")

    logger.info(f"Completed processing. Success: {summary.succeeded}/{summary.total} calls.")
    return summary
