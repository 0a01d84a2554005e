import pytest

from resgrid_eso.errors import SourceError
from resgrid_eso.records import RawActivityEntry, RawDispatchEntry, RawIncident
from resgrid_eso.sftp_delivery import TransferChannel
from resgrid_eso.sheets_writer import SheetTable


class FakeChannel(TransferChannel):
    """Records stores; raises the queued errors first."""

    def __init__(self, errors=None):
        self.errors = list(errors or [])
        self.calls = []
        self.files = {}

    def store(self, content, remote_path):
        self.calls.append(remote_path)
        if self.errors:
            err = self.errors.pop(0)
            if err is not None:
                raise err
        self.files[remote_path] = content


class AlwaysFailingChannel(TransferChannel):
    def __init__(self, error):
        self.error = error
        self.calls = 0

    def store(self, content, remote_path):
        self.calls += 1
        raise self.error


class FakeTable(SheetTable):
    def __init__(self, rows=None, read_error=None, write_error=None):
        self.rows = [list(r) for r in (rows or [])]
        self.read_error = read_error
        self.write_error = write_error
        self.headers = None

    def read_column(self, index):
        if self.read_error:
            raise self.read_error
        return [r[index] if len(r) > index else "" for r in self.rows]

    def update_row(self, row_number, values):
        if self.write_error:
            raise self.write_error
        self.rows[row_number - 1] = list(values)

    def append_row(self, values):
        if self.write_error:
            raise self.write_error
        self.rows.append(list(values))

    def ensure_headers(self, headers):
        self.headers = list(headers)
        if not self.rows:
            self.rows.append(list(headers))


class FakeSleep:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


class FakeSource:
    def __init__(self, calls=None, extra=None, failing_extra=()):
        self.calls = list(calls or [])
        self.extra = dict(extra or {})
        self.failing_extra = set(failing_extra)

    def fetch_recent(self, days_back=7):
        return list(self.calls)

    def fetch_call(self, call_id):
        for c in self.calls:
            if c.call_id == call_id:
                return c
        raise SourceError(f"call {call_id} not found", status_code=404)

    def fetch_extra(self, call_id):
        if call_id in self.failing_extra:
            raise SourceError("GET Calls/GetCallExtraData returned 500", status_code=500)
        return self.extra.get(call_id, ([], []))


@pytest.fixture
def chalon_incident():
    return RawIncident(
        call_id="198513",
        logged_on="2025-05-05T18:42:10Z",
        name="PERSON DOWN",
        nature="PERSON DOWN",
        address="11401 Chalon Rd, Los Angeles, CA 90049, USA",
        priority_id="1560",
    )


@pytest.fixture
def full_activity():
    return [
        RawActivityEntry("Unit", "Medic 1", 5, "2025-05-05T18:44:00Z", "Responding"),
        RawActivityEntry("Unit", "Engine 7", 5, "2025-05-05T18:45:00Z", "Responding"),
        RawActivityEntry("Unit", "Medic 1", 6, "2025-05-05T18:51:00Z", "On Scene"),
        RawActivityEntry("Unit", "Medic 1", 8, "2025-05-05T19:30:00Z", "Returning"),
    ]


@pytest.fixture
def full_dispatches():
    return [
        RawDispatchEntry("Unit", "Engine 7", "34.08,-118.48"),
        RawDispatchEntry("Unit", "Rescue 3", ""),
        RawDispatchEntry("User", "J. Smith", ""),
    ]


@pytest.fixture
def sleep():
    return FakeSleep()
