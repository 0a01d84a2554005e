from resgrid_eso.bridge import IncidentOutcome
from resgrid_eso.listener import CallListener, extract_call_id


def test_extract_call_id_shapes():
    assert extract_call_id([198513]) == "198513"
    assert extract_call_id(["198513"]) == "198513"
    assert extract_call_id([{"CallId": 7}]) == "7"
    assert extract_call_id({"callId": 8}) == "8"
    assert extract_call_id([]) == ""


def test_on_call_added_dispatches_to_handler():
    seen = []

    def handler(call_id):
        seen.append(call_id)
        return IncidentOutcome(call_id, True)

    listener = CallListener("https://events.example.test/eventingHub", handler)
    listener.on_call_added([{"CallId": 42}])
    listener.on_call_added([None])
    assert seen == ["42"]


def test_stop_without_start():
    listener = CallListener("https://events.example.test/eventingHub", lambda call_id: None)
    listener.stop()
    assert listener.connection is None
