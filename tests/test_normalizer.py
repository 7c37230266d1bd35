import json

import pytest

from tinyquiz.core.exceptions import MalformedResponse, SchemaViolation
from tinyquiz.services.normalizer import (
    extract_flat_array,
    parse_flat_array,
    parse_questions_object,
    strip_code_fences,
    validate_question,
)


def gemini_question(**overrides):
    q = {
        "question": "What do plants absorb for photosynthesis?",
        "options": ["Oxygen", "Carbon dioxide", "Nitrogen", "Helium"],
        "correctAnswer": 1,
        "explanation": "Plants take in CO2.",
    }
    q.update(overrides)
    return q


def flat_question(**overrides):
    q = {
        "question": "Where does photosynthesis happen?",
        "option1": "Mitochondria",
        "option2": "Chloroplast",
        "option3": "Nucleus",
        "option4": "Ribosome",
        "answer": "option2",
        "explanation": "Chloroplasts hold chlorophyll.",
    }
    q.update(overrides)
    return q


# ---- fences ----

def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences("```JSON\n[]```  ") == "[]"
    assert strip_code_fences("  plain  ") == "plain"


# ---- questions object shape ----

def test_questions_object_parses_fenced_payload_and_trims():
    raw = "```json\n" + json.dumps({"questions": [gemini_question(
        question="  What do plants absorb?  ",
        options=[" Oxygen ", "Carbon dioxide", "Nitrogen", "Helium  "],
        explanation="  CO2.  ",
    )]}) + "\n```"
    [q] = parse_questions_object(raw)
    assert q.question == "What do plants absorb?"
    assert q.options == ["Oxygen", "Carbon dioxide", "Nitrogen", "Helium"]
    assert q.correct_answer == 1
    assert q.explanation == "CO2."


def test_questions_object_invalid_json_is_malformed():
    with pytest.raises(MalformedResponse):
        parse_questions_object("Sure! Here are your questions: {oops")


@pytest.mark.parametrize("payload", [{}, {"questions": "nope"}, {"questions": []}, [gemini_question()]])
def test_questions_object_missing_or_empty_array(payload):
    with pytest.raises(SchemaViolation):
        parse_questions_object(json.dumps(payload))


@pytest.mark.parametrize("overrides", [
    {"question": "   "},
    {"question": None},
    {"options": ["a", "b", "c"]},
    {"options": ["a", "b", "c", "  "]},
    {"options": ["a", "b", "c", 4]},
    {"correctAnswer": 4},
    {"correctAnswer": -1},
    {"correctAnswer": "1"},
    {"correctAnswer": 1.5},
    {"correctAnswer": True},
    {"explanation": ""},
])
def test_questions_object_violation_names_index(overrides):
    raw = json.dumps({"questions": [gemini_question(), gemini_question(**overrides)]})
    with pytest.raises(SchemaViolation) as exc:
        parse_questions_object(raw)
    assert exc.value.index == 2
    assert exc.value.message.startswith("Question 2:")


def test_missing_explanation_is_a_violation_for_questions_object():
    q = gemini_question()
    del q["explanation"]
    with pytest.raises(SchemaViolation):
        validate_question(q, 1)


# ---- flat array shape ----

def test_flat_array_strategy_one_finds_array_in_prose():
    raw = "Here you go:\n" + json.dumps([flat_question()]) + "\nGood luck!"
    assert extract_flat_array(raw) == [flat_question()]


def test_flat_array_strategy_two_after_fence_strip():
    # fence markers inside the literal defeat the first search
    body = json.dumps([flat_question()], indent=2)
    raw = "```json\n" + body.replace('"option4"', '```"option4"') + "\n```"
    assert extract_flat_array(raw)[0]["option4"] == "Ribosome"


def test_flat_array_strategy_three_whole_text():
    assert extract_flat_array("```json\n[]\n```") == []

    # "}]" inside a string cuts the array-literal search short
    tricky = flat_question(question="Which token closes a list of objects?", option1="}]", answer="option1")
    raw = "```json\n" + json.dumps([tricky, flat_question()]) + "\n```"
    items = extract_flat_array(raw)
    assert len(items) == 2
    assert items[0]["option1"] == "}]"
    [first, _] = parse_flat_array(raw)
    assert first.correct_answer == 0


def test_flat_array_nothing_found_is_malformed():
    with pytest.raises(MalformedResponse):
        extract_flat_array("I cannot help with that.")
    with pytest.raises(MalformedResponse):
        extract_flat_array("[not json")


def test_flat_array_maps_answer_case_insensitively_and_trims():
    raw = json.dumps([flat_question(answer="OPTION4", option4="  Ribosome ")])
    [q] = parse_flat_array(raw)
    assert q.correct_answer == 3
    assert q.options[3] == "Ribosome"


@pytest.mark.parametrize("explanation", [None, "", "   ", 42])
def test_flat_array_defaults_missing_explanation(explanation):
    item = flat_question(explanation=explanation)
    if explanation is None:
        del item["explanation"]
    [q] = parse_flat_array(json.dumps([item]))
    assert q.explanation == "The correct answer is option2."


@pytest.mark.parametrize("field", ["question", "option1", "option2", "option3", "option4", "answer"])
def test_flat_array_missing_field_names_index(field):
    broken = flat_question()
    del broken[field]
    with pytest.raises(SchemaViolation) as exc:
        parse_flat_array(json.dumps([flat_question(), flat_question(), broken]))
    assert exc.value.index == 3


@pytest.mark.parametrize("answer", ["option5", "B", "2"])
def test_flat_array_rejects_unknown_answer_token(answer):
    with pytest.raises(SchemaViolation) as exc:
        parse_flat_array(json.dumps([flat_question(answer=answer)]))
    assert exc.value.index == 1


def test_flat_array_empty_is_a_violation():
    with pytest.raises(SchemaViolation):
        parse_flat_array("[]")


def test_both_shapes_yield_the_same_canonical_question():
    from_object = parse_questions_object(json.dumps({"questions": [{
        "question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswer": 2, "explanation": "E",
    }]}))
    from_flat = parse_flat_array(json.dumps([{
        "question": "Q?", "option1": "a", "option2": "b", "option3": "c", "option4": "d",
        "answer": "option3", "explanation": "E",
    }]))
    assert from_object == from_flat
