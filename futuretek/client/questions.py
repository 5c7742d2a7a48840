"""Per-question-type answer handling for the assessment player."""

from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping

from futuretek.models.assessment import Question, QuestionType
from futuretek.models.base import round_half_up


@dataclass(frozen=True)
class AnswerProgress:
    answered: int
    total: int
    percentage: int


def _choice(question: Question, raw: Any) -> str:
    # Bound by option text, not position
    if not question.options or raw not in question.options:
        raise ValueError(f"{raw!r} is not an option of question {question.id}")
    return raw


def _true_false(question: Question, raw: Any) -> str:
    if isinstance(raw, bool):
        return "true" if raw else "false"
    value = str(raw).strip().lower()
    if value not in ("true", "false"):
        raise ValueError(f"{raw!r} is not a true/false answer")
    return value


def _text(question: Question, raw: Any) -> str:
    return raw


ANSWER_HANDLERS: Dict[QuestionType, Callable[[Question, Any], Any]] = {
    QuestionType.MULTIPLE_CHOICE: _choice,
    QuestionType.TRUE_FALSE: _true_false,
    QuestionType.SHORT_ANSWER: _text,
    QuestionType.ESSAY: _text,
}


def normalize_answer(question: Question, raw: Any) -> Any:
    """Convert what the learner entered into the value stored in ``answers``."""
    return ANSWER_HANDLERS[question.question_type](question, raw)


def is_answered(value: Any) -> bool:
    return value is not None and value != ""


def answer_progress(questions: List[Question], answers: Mapping[str, Any]) -> AnswerProgress:
    """Count answered keys against the number of questions.

    Keys are counted as-is, so an answer stored under an id that is not one of
    ``questions`` still counts toward ``answered``.
    """
    total = len(questions)
    answered = sum(1 for value in answers.values() if is_answered(value))
    percentage = round_half_up(answered / total * 100) if total > 0 else 0
    return AnswerProgress(answered=answered, total=total, percentage=percentage)


def duplicate_options(question: Question) -> List[str]:
    counts = Counter(question.options or [])
    return [option for option, n in counts.items() if n > 1]


def questions_with_duplicate_options(questions: Iterable[Question]) -> Dict[str, List[str]]:
    found = {}
    for question in questions:
        duplicates = duplicate_options(question)
        if duplicates:
            found[question.id] = duplicates
    return found
