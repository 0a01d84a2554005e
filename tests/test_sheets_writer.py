from googleapiclient.errors import HttpError
from httplib2 import Response

from resgrid_eso.incident_mapper import map_incident
from resgrid_eso.sheets_writer import CALLS_HEADERS, build_row, column_letter, find_row, upsert_incident

from conftest import FakeTable

EXPORTED = "2025-05-05T21:00:00+00:00"


def http_error(status=500):
    return HttpError(Response({"status": status}), b"backend error")


def test_row_shape(chalon_incident):
    row = build_row(map_incident(chalon_incident), EXPORTED)
    assert len(row) == len(CALLS_HEADERS)
    by_header = dict(zip(CALLS_HEADERS, row))
    assert by_header["Call ID"] == "198513"
    assert by_header["Address"] == "11401 Chalon Rd"
    assert by_header["Unit Name(s)"] == "No Units"
    assert by_header["Response Mode"] == "Lights & Sirens"
    assert by_header["Priority"] == "Emergent"
    assert by_header["Last Updated"] == EXPORTED


def test_append_when_missing(chalon_incident):
    table = FakeTable(rows=[CALLS_HEADERS, ["t", "111"]])
    result = upsert_incident(table, map_incident(chalon_incident), EXPORTED)
    assert result.success and result.action == "appended"
    assert len(table.rows) == 3
    assert table.rows[2][1] == "198513"


def test_update_in_place(chalon_incident):
    table = FakeTable(rows=[CALLS_HEADERS, ["t", "111"], ["old", "198513"], ["t", "222"]])
    result = upsert_incident(table, map_incident(chalon_incident), EXPORTED)
    assert result.success and result.action == "updated"
    assert result.row == 3
    assert len(table.rows) == 4
    assert table.rows[2][-1] == EXPORTED


def test_header_cell_never_matches():
    assert find_row(["198513"], "198513") is None
    assert find_row(["Call ID", "5", "198513"], "198513") == 3


def test_lookup_failure_falls_back_to_append(chalon_incident):
    table = FakeTable(rows=[CALLS_HEADERS], read_error=http_error())
    result = upsert_incident(table, map_incident(chalon_incident), EXPORTED)
    assert result.success
    assert result.action == "appended_fallback"
    assert len(table.rows) == 2


def test_write_failure_reported(chalon_incident):
    table = FakeTable(rows=[CALLS_HEADERS], write_error=http_error(403))
    result = upsert_incident(table, map_incident(chalon_incident), EXPORTED)
    assert not result.success
    assert result.action == "failed"
    assert result.error


def test_column_letter():
    assert column_letter(0) == "A"
    assert column_letter(25) == "Z"
    assert column_letter(26) == "AA"


def test_lookup_transport_error_falls_back_to_append(chalon_incident):
    import httplib2

    table = FakeTable(rows=[CALLS_HEADERS], read_error=httplib2.ServerNotFoundError("Unable to find the server"))
    result = upsert_incident(table, map_incident(chalon_incident), EXPORTED)
    assert result.success
    assert result.action == "appended_fallback"


def test_write_transport_error_reported(chalon_incident):
    import httplib2

    table = FakeTable(rows=[CALLS_HEADERS], write_error=httplib2.ServerNotFoundError("Unable to find the server"))
    result = upsert_incident(table, map_incident(chalon_incident), EXPORTED)
    assert not result.success
    assert "Unable to find the server" in result.error
