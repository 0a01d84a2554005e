import pytest

from resgrid_eso.response_mode import classify_response_mode, priority_label, response_mode_label


def test_keyword_wins_over_emergent_priority():
    assert classify_response_mode("Routine transport, non-emergency", "1560") == "395"


@pytest.mark.parametrize("text", ["NON EMERGENCY transfer", "non-urgent", "Scheduled pickup", "nonemergency"])
def test_keywords(text):
    assert classify_response_mode(text, None) == "395"


def test_priority_mapping():
    assert classify_response_mode("PERSON DOWN", "1559") == "395"
    assert classify_response_mode("PERSON DOWN", "1560") == "390"
    assert classify_response_mode("PERSON DOWN", "42") == "390"
    assert classify_response_mode("", None) == "390"


def test_labels():
    assert response_mode_label("390") == "Lights & Sirens"
    assert response_mode_label("395") == "No Lights & Sirens"
    assert priority_label("1560") == "Emergent"
    assert priority_label("1559", "Low") == "Low"
    assert priority_label("7") == "7"
