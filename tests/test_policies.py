import pytest

from graph.policies import (
    INVALID_DATE,
    INVALID_NUMBER,
    INVALID_OPTION,
    answers_payload,
    city_answer,
    first_unanswered,
    is_date,
    is_minimal_input,
    is_number,
    match_city,
    match_option,
    record_answer,
    validate_answer,
)
from models.planner import CITY_SELECTION_ID, Answer, City, Question, QuestionType
from tests.conftest import question


def q(qid, order=1, **kwargs):
    return Question.model_validate(question(qid, order, **kwargs))


def test_match_option_is_case_insensitive_and_returns_declared_spelling():
    assert match_option(["Budget", "Luxury"], "  luxury ") == "Luxury"
    assert match_option(["Budget", "Luxury"], "Lux") is None


def test_match_city():
    cities = [City(_id="c1", cityName="Paris"), City(_id="c2", cityName="Rome")]
    assert match_city(cities, "ROME").id == "c2"
    assert match_city(cities, "Berlin") is None


@pytest.mark.parametrize(
    "text,ok",
    [
        ("5", True),
        ("-2.5", True),
        (" 3 ", True),
        ("1e3", True),
        ("abc", False),
        ("nan", False),
        ("", False),
        ("inf", False),
        ("-Infinity", False),
        ("1_000", False),
    ],
)
def test_is_number(text, ok):
    assert is_number(text) is ok


@pytest.mark.parametrize(
    "text,ok",
    [
        ("2025-06-01", True),
        ("2025-13-40", True),  # shape only
        ("2025-6-1", False),
        ("01/06/2025", False),
        ("2025-06-01T10:00", False),
        ("２０２５-０６-０１", False),
    ],
)
def test_is_date(text, ok):
    assert is_date(text) is ok


def test_validate_answer_by_type():
    choice = q("style", type="common", options=["Budget", "Luxury"])
    assert validate_answer(choice, "budget") is None
    assert validate_answer(choice, "Medium") == INVALID_OPTION

    assert validate_answer(q("days", type="number"), "abc") == INVALID_NUMBER
    assert validate_answer(q("start", type="date"), "tomorrow") == INVALID_DATE
    assert validate_answer(q("notes", type="text"), "anything goes") is None


def test_choice_question_without_options_accepts_free_text():
    assert validate_answer(q("style", type="options", options=[]), "whatever") is None


def test_unknown_question_type_is_treated_as_text():
    odd = q("odd", type="slider", options=["1", "2"])

    assert odd.kind is QuestionType.TEXT
    assert odd.type == "slider"
    assert not odd.is_choice
    assert validate_answer(odd, "anything") is None


def test_record_answer_replaces_previous_answer_for_same_question():
    answers = [Answer(question_id="a", response="1"), Answer(question_id="b", response="2")]
    updated = record_answer(answers, "a", "3")

    assert [(a.question_id, a.response) for a in updated] == [("b", "2"), ("a", "3")]
    assert len(answers) == 2  # input untouched


def test_first_unanswered_ignores_city_selection():
    questions = [q("q1", 1), q("q2", 2)]
    answers = [Answer(question_id=CITY_SELECTION_ID, response="Paris"), Answer(question_id="q1", response="x")]

    assert first_unanswered(questions, answers) == 1
    assert first_unanswered(questions, answers + [Answer(question_id="q2", response="y")]) is None
    assert first_unanswered([], answers) is None


def test_answers_payload_follows_question_order():
    questions = [q("q1", 1), q("q2", 2)]
    answers = [Answer(question_id="q2", response="b"), Answer(question_id=CITY_SELECTION_ID, response="Paris")]

    assert answers_payload(questions, answers) == [{"response": "Not provided"}, {"response": "b"}]
    assert city_answer(answers) == "Paris"


def test_is_minimal_input():
    assert is_minimal_input([], [])
    assert is_minimal_input([q("q1")], [{"response": "x"}])
    assert not is_minimal_input([q("q1"), q("q2")], [{"response": "x"}, {"response": "y"}])
