"""
assessment_scorer.py - Assessment scoring and attempt bookkeeping

Provides:
- score_answers(questions, answers, passing_score) - Score a finished attempt
- check_availability(assessment) - Enforce the availability window
- check_attempt_limits(db, assessment, user_id, enrollment_id) - maxAttempts / allowRetake
- update_lesson_progress_after_assessment(...) - Record lesson quiz outcome
- update_enrollment_statistics(...) - Refresh enrollment score aggregates
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from futuretek.config import settings
from futuretek.db import lms
from futuretek.models.assessment import (
    AssessmentResults,
    Difficulty,
    QuestionResult,
    QuestionType,
)
from futuretek.models.base import round_half_up

logger = logging.getLogger(__name__)


def normalize_answer(answer: Any) -> str:
    """Normalize an answer for comparison."""
    if answer is None:
        return ""
    return str(answer).strip().lower()


def _grade_choice(question: Dict[str, Any], answer: Any) -> bool:
    return answer == question.get("correct_answer")


def _grade_true_false(question: Dict[str, Any], answer: Any) -> bool:
    # The learner UI writes "true"/"false"; authored keys may be capitalised
    return normalize_answer(answer) == normalize_answer(question.get("correct_answer"))


def _grade_short_answer(question: Dict[str, Any], answer: Any) -> bool:
    return normalize_answer(answer) == normalize_answer(question.get("correct_answer"))


# question type -> (grader, wrong answers cost negative points)
# ESSAY has no entry: it is never auto-graded
GRADERS = {
    QuestionType.MULTIPLE_CHOICE.value: (_grade_choice, True),
    QuestionType.TRUE_FALSE.value: (_grade_true_false, True),
    QuestionType.SHORT_ANSWER.value: (_grade_short_answer, False),
}


def score_question(question: Dict[str, Any], answer: Any) -> QuestionResult:
    """
    Score a single question.

    Returns a QuestionResult whose ``points`` may be negative when a wrong
    choice answer carries a penalty.
    """
    max_points = question.get("points") or 1
    negative_points = question.get("negative_points") or 0
    is_correct = False
    earned = 0

    grader = GRADERS.get(question["question_type"])
    if grader is not None and answer is not None:
        grade, penalised = grader
        if grade(question, answer):
            is_correct = True
            earned = max_points
        elif penalised and negative_points:
            earned = -negative_points

    return QuestionResult(
        question_id=question["id"],
        question_text=question["question_text"],
        question_type=question["question_type"],
        difficulty=question.get("difficulty") or Difficulty.MEDIUM,
        correct_answer=question.get("correct_answer"),
        user_answer=answer,
        is_correct=is_correct,
        points=earned,
        max_points=max_points,
        negative_points=negative_points,
        explanation=question.get("explanation"),
    )


def score_answers(
    questions: List[Dict[str, Any]],
    answers: Dict[str, Any],
    passing_score: Optional[int] = None,
) -> AssessmentResults:
    """Score ``answers`` (question id -> answer) against the active questions."""
    passing_score = passing_score or settings.default_passing_score

    details = [score_question(q, answers.get(q["id"])) for q in questions]
    score = sum(d.points for d in details)
    total_points = sum(d.max_points for d in details)
    correct = sum(1 for d in details if d.is_correct)
    percentage = round_half_up(score / total_points * 100) if total_points > 0 else 0

    return AssessmentResults(
        score=score,
        total_points=total_points,
        percentage=percentage,
        passed=percentage >= passing_score,
        passing_score=passing_score,
        correct_answers=correct,
        total_questions=len(questions),
        detailed_results=details,
    )


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    ts = datetime.fromisoformat(value)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def check_availability(assessment: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    available_from = _parse_ts(assessment.get("available_from"))
    available_until = _parse_ts(assessment.get("available_until"))

    if available_from and now < available_from:
        return {"available": False, "reason": "Assessment not available yet"}
    if available_until and now > available_until:
        return {"available": False, "reason": "Assessment deadline has passed"}
    return {"available": True}


async def check_attempt_limits(
    db, assessment: Dict[str, Any], user_id: str, enrollment_id: str
) -> Dict[str, Any]:
    previous = await lms.count_attempts(db, assessment["id"], user_id, enrollment_id)
    current_attempt = previous + 1
    max_attempts = assessment.get("max_attempts")

    if max_attempts and current_attempt > max_attempts:
        return {
            "allowed": False,
            "reason": f"Maximum attempts ({max_attempts}) exceeded",
            "current_attempt": previous,
            "max_attempts": max_attempts,
        }

    if not assessment.get("allow_retake", True):
        passed = await lms.find_passed_attempt(db, assessment["id"], user_id, enrollment_id)
        if passed:
            return {
                "allowed": False,
                "reason": "Assessment already passed and retake not allowed",
                "current_attempt": previous,
                "max_attempts": max_attempts,
            }

    return {"allowed": True, "current_attempt": current_attempt, "max_attempts": max_attempts}


async def update_lesson_progress_after_assessment(
    db, assessment: Dict[str, Any], user_id: str, enrollment_id: str, passed: bool
) -> None:
    """Record a lesson quiz outcome on the lesson's progress row (fail-soft)."""
    if not assessment.get("lesson_id") or assessment.get("assessment_level") != "LESSON_QUIZ":
        return
    try:
        existing = await lms.get_lesson_progress(db, user_id, assessment["lesson_id"])
        # A pass is never downgraded by a later failed retake
        quiz_passed = passed or bool(existing and existing.get("quiz_passed"))
        await lms.upsert_lesson_progress(
            db,
            user_id,
            assessment["lesson_id"],
            enrollment_id,
            {"quiz_attempted": True, "quiz_passed": quiz_passed},
        )
    except Exception as e:
        logger.warning(f"Lesson progress update failed after assessment {assessment['id']}: {e}")


async def update_enrollment_statistics(
    db, assessment: Dict[str, Any], enrollment_id: str, percentage: int
) -> None:
    """Refresh the enrollment's score aggregates after a submission (fail-soft)."""
    level = assessment.get("assessment_level")
    try:
        if level == "COURSE_FINAL":
            await lms.update_enrollment(
                db, enrollment_id, final_assessment_score=percentage, overall_score=percentage
            )
        elif level == "MODULE_ASSESSMENT":
            avg = await lms.average_completed_percentage(db, enrollment_id, level)
            average = round_half_up(avg) if avg else 0
            await lms.update_enrollment(
                db, enrollment_id, average_quiz_score=average, overall_score=average
            )
        elif level == "LESSON_QUIZ":
            avg = await lms.average_completed_percentage(db, enrollment_id, level)
            await lms.update_enrollment(
                db, enrollment_id, average_quiz_score=round_half_up(avg) if avg else 0
            )
    except Exception as e:
        logger.warning(f"Enrollment statistics update failed for {enrollment_id}: {e}")
