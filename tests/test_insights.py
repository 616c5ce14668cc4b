import pytest

from patentflow.core.errors import InsightFailed
from patentflow.services.insights import build_prompt, parse_model_output, system_prompt


def test_structured_text_answer():
    result = parse_model_output('{"responseType": "text", "data": "There are 4 projects."}')
    assert result.responseType == "text"
    assert result.data == "There are 4 projects."


def test_fenced_chart_answer():
    raw = '```json\n{"responseType": "chart", "data": [{"name": "Acme", "value": 2}, {"name": "Globex", "value": 5}]}\n```'
    result = parse_model_output(raw)
    assert result.responseType == "chart"
    assert [(point.name, point.value) for point in result.data] == [("Acme", 2), ("Globex", 5)]


def test_unstructured_output_becomes_a_text_answer():
    result = parse_model_output("Most projects belong to Acme.")
    assert result.responseType == "text"
    assert result.data == "Most projects belong to Acme."


def test_mismatched_shape_becomes_a_text_answer():
    raw = '{"responseType": "chart", "data": "not a list"}'
    result = parse_model_output(raw)
    assert result.responseType == "text"
    assert result.data == raw


@pytest.mark.parametrize("raw", ["", "   ", None])
def test_empty_output_is_an_error(raw):
    with pytest.raises(InsightFailed):
        parse_model_output(raw)


def test_prompt_carries_the_question_and_the_data(make_project):
    project = make_project(client_name="Acme", subject_line="Annuity due")
    prompt = build_prompt("Which client has most renewals?", [project])
    assert "Which client has most renewals?" in prompt
    assert '"client_name": "Acme"' in prompt
    assert '"entries"' not in prompt
    assert "chart" in system_prompt()
