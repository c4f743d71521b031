import math
import re
from typing import Iterable, List, Optional, Sequence

from models.planner import CITY_SELECTION_ID, Answer, City, Question, QuestionType

# Shape only: calendar validity (e.g. 2025-02-31) is not checked
DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)

INVALID_OPTION = "Please select a valid option from the provided choices."
INVALID_NUMBER = "Please enter a valid number."
INVALID_DATE = "Please enter a valid date in YYYY-MM-DD format."


def _norm(s: str) -> str:
    return (s or "").strip().lower()


def match_option(options: Sequence[str], text: str) -> Optional[str]:
    """Return the declared option matching `text` case-insensitively, else None."""
    wanted = _norm(text)
    return next((opt for opt in options if _norm(opt) == wanted), None)


def match_city(cities: Iterable[City], name: str) -> Optional[City]:
    wanted = _norm(name)
    return next((c for c in cities if _norm(c.city_name) == wanted), None)


def is_number(text: str) -> bool:
    """Finite decimal or exponent notation; "inf", "nan" and "1_000" are rejected."""
    if "_" in text:
        return False
    try:
        value = float(text.strip())
    except ValueError:
        return False
    return math.isfinite(value)


def is_date(text: str) -> bool:
    return DATE_PATTERN.fullmatch(text) is not None


def validate_answer(question: Question, text: str) -> Optional[str]:
    """
    Check a response against the question type.

    Returns the error message to show, or None when the answer is acceptable.
    """
    if question.is_choice:
        return None if match_option(question.choices, text) is not None else INVALID_OPTION
    if question.kind == QuestionType.NUMBER and not is_number(text):
        return INVALID_NUMBER
    if question.kind == QuestionType.DATE and not is_date(text):
        return INVALID_DATE
    return None


def record_answer(answers: List[Answer], question_id: str, response: str) -> List[Answer]:
    """Return a new answer list holding exactly one answer for `question_id`."""
    kept = [a for a in answers if a.question_id != question_id]
    return kept + [Answer(question_id=question_id, response=response)]


def city_answer(answers: Iterable[Answer]) -> Optional[str]:
    return next((a.response for a in answers if a.question_id == CITY_SELECTION_ID), None)


def first_unanswered(questions: Sequence[Question], answers: Iterable[Answer]) -> Optional[int]:
    """
    Guardrail before generation: index of the first question without an
    answer, or None when every question is answered.
    """
    answered = {a.question_id for a in answers if a.question_id != CITY_SELECTION_ID}
    return next((i for i, q in enumerate(questions) if q.id not in answered), None)


def answers_payload(questions: Sequence[Question], answers: Iterable[Answer]) -> List[dict]:
    """Answer-only payload in question order, as the travel-plan endpoint expects."""
    by_id = {a.question_id: a.response for a in answers}
    return [{"response": by_id.get(q.id, "Not provided")} for q in questions]


def is_minimal_input(questions: Sequence[Question], payload: Sequence[dict]) -> bool:
    return len(questions) == 0 or len(payload) <= 1
