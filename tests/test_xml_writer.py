from resgrid_eso.config import ESO_GUID
from resgrid_eso.incident_mapper import map_incident
from resgrid_eso.records import DerivedIncident
from resgrid_eso.xml_writer import FIELD_ORDER, remote_file_name, render_xml


def test_chalon_scenario(chalon_incident):
    xml = render_xml(map_incident(chalon_incident, [], [])).decode("utf-8")
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<CadIncident>\n')
    assert "<IncidentNumber>198513</IncidentNumber>" in xml
    assert "<IncidentCity>Los Angeles</IncidentCity>" in xml
    assert "<ResponseModeToScene>390</ResponseModeToScene>" in xml
    assert "<UnitEnRoute/>" in xml
    assert "<EmsUnitCallSign/>" in xml
    assert "No Units" not in xml
    assert "<Guid>" not in xml


def test_element_order():
    xml = render_xml(DerivedIncident(call_id="1")).decode("utf-8")
    positions = [xml.index(f"<{tag}") for tag, _ in FIELD_ORDER]
    assert positions == sorted(positions)
    assert len(FIELD_ORDER) == 23


def test_guid_first_when_enabled():
    xml = render_xml(DerivedIncident(call_id="1"), include_guid=True).decode("utf-8")
    lines = xml.splitlines()
    assert lines[2] == f"  <Guid>{ESO_GUID}</Guid>"


def test_escaping():
    derived = DerivedIncident(call_id="1", nature="Smith & Sons <\"garage\"> 'rear'")
    xml = render_xml(derived).decode("utf-8")
    assert "<CadDispatchText>Smith &amp; Sons &lt;&quot;garage&quot;&gt; &apos;rear&apos;</CadDispatchText>" in xml


def test_units_joined():
    xml = render_xml(DerivedIncident(call_id="1", units=("Medic 1", "Engine 7"))).decode("utf-8")
    assert "<EmsUnitCallSign>Medic 1, Engine 7</EmsUnitCallSign>" in xml


def test_deterministic():
    d = DerivedIncident(call_id="1", city="Reno")
    assert render_xml(d) == render_xml(d)


def test_remote_file_name():
    assert remote_file_name("198513") == "incident_198513.xml"
    assert remote_file_name("198513", "timestamped", 1746470530000) == "call_198513_1746470530000.xml"


def test_control_characters_stripped():
    from xml.dom.minidom import parseString

    derived = DerivedIncident(call_id="1", description="Bleeding\x0b from\x00 leg\tright\nside")
    xml = render_xml(derived)
    assert b"\x0b" not in xml and b"\x00" not in xml
    doc = parseString(xml)
    text = doc.getElementsByTagName("CallNatureDescription")[0].firstChild.data
    assert text == "Bleeding from leg\tright\nside"
