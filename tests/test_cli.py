import pytest

from resgrid_eso import cli
from resgrid_eso.records import RawIncident

from conftest import FakeSource


def test_parser():
    args = cli.build_parser().parse_args(["--config", "c.json", "poll", "--days", "3", "--watch"])
    assert (args.config, args.command, args.days, args.watch) == ("c.json", "poll", 3, True)
    args = cli.build_parser().parse_args(["export", "--call-id", "198513", "--out", "x"])
    assert (args.call_id, args.out) == ("198513", "x")


def test_missing_credentials_exit_code(monkeypatch, tmp_path):
    monkeypatch.delenv("RESGRID_USER", raising=False)
    monkeypatch.delenv("RESGRID_PASS", raising=False)
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    assert cli.main(["poll"]) == 2


def test_export_writes_local_xml(monkeypatch, tmp_path):
    source = FakeSource([RawIncident(call_id="198513", address="11401 Chalon Rd, Los Angeles, CA 90049, USA")])
    monkeypatch.setattr(cli, "ResgridClient", lambda cfg: source)
    monkeypatch.setenv("RESGRID_USER", "u")
    monkeypatch.setenv("RESGRID_PASS", "p")
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    out = tmp_path / "out"
    assert cli.main(["export", "--call-id", "198513", "--out", str(out)]) == 0
    assert b"<IncidentCity>Los Angeles</IncidentCity>" in (out / "incident_198513.xml").read_bytes()
    assert cli.main(["export", "--call-id", "404", "--out", str(out)]) == 1


def test_unknown_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["serve"])
