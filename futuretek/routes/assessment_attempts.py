"""Assessment attempts: start, save-and-exit, submit, abandon, results and history.

All verbs share one path and dispatch on query flags (``submit``, ``abandon``,
``results``) the way the learner player calls them.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request

from futuretek.db import lms
from futuretek.db.database import get_db
from futuretek.models.assessment import (
    AssessmentAttempt,
    AttemptStatus,
    SaveAttemptRequest,
    StartAttemptRequest,
    SubmitAttemptRequest,
)
from futuretek.routes.assessments import serialize_questions
from futuretek.routes.auth import get_current_user, require_admin, require_user_match
from futuretek.routes.envelope import (
    ApiError,
    parse_boolean,
    read_body,
    success_response,
    validate_id,
    validate_optional_id,
)
from futuretek.services.assessment_scorer import (
    check_attempt_limits,
    check_availability,
    score_answers,
    update_enrollment_statistics,
    update_lesson_progress_after_assessment,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assessment-attempts", tags=["assessment-attempts"])


# ── Helpers ──────────────────────────────────────────────────────────

def _serialize_attempt(row: dict) -> dict:
    return AssessmentAttempt.model_validate(row).to_api()


async def _get_owned_attempt(db, attempt_id: str, user: dict) -> dict:
    attempt = await lms.get_attempt(db, attempt_id)
    if not attempt:
        raise ApiError("Attempt not found", "NOT_FOUND", 404)
    require_user_match(user, attempt["user_id"])
    return attempt


def _seconds_since(started_at: str) -> int:
    started = datetime.fromisoformat(started_at)
    if started.tzinfo is None:
        started = started.replace(tzinfo=timezone.utc)
    elapsed = (datetime.now(timezone.utc) - started).total_seconds()
    return max(0, math.floor(elapsed))


# ── Start / submit ───────────────────────────────────────────────────

async def _start_attempt(request: Request, db, user: dict):
    body = await read_body(request, StartAttemptRequest)
    if not body.assessment_id or not body.user_id or not body.enrollment_id:
        raise ApiError("Missing required fields", "VALIDATION_ERROR")
    validate_id(body.assessment_id, "Assessment ID")
    validate_id(body.user_id, "User ID")
    validate_id(body.enrollment_id, "Enrollment ID")
    require_user_match(user, body.user_id)

    assessment = await lms.get_assessment(db, body.assessment_id)
    if not assessment:
        raise ApiError("Assessment not found", "NOT_FOUND", 404)

    enrollment = await lms.get_enrollment(db, body.enrollment_id)
    if (
        not enrollment
        or enrollment["user_id"] != body.user_id
        or enrollment["course_id"] != assessment["course_id"]
    ):
        raise ApiError("Not enrolled", "NOT_ENROLLED", 403)

    availability = check_availability(assessment)
    if not availability["available"]:
        raise ApiError(availability["reason"], "NOT_AVAILABLE", 403)

    limits = await check_attempt_limits(db, assessment, body.user_id, body.enrollment_id)
    if not limits["allowed"]:
        raise ApiError(limits["reason"], "ATTEMPT_LIMIT", 403)

    questions = await lms.list_questions(db, assessment["id"])
    total_points = sum(q.get("points") or 1 for q in questions)

    attempt = await lms.create_attempt(
        db,
        assessment_id=assessment["id"],
        user_id=body.user_id,
        enrollment_id=body.enrollment_id,
        attempt_number=limits["current_attempt"],
        total_points=total_points,
    )
    logger.info(f"Attempt {attempt['id']} started for assessment {assessment['id']} by {body.user_id}")

    return success_response(
        {
            "attempt": _serialize_attempt(attempt),
            "questions": serialize_questions(questions, include_answers=False),
            "timeLimit": assessment.get("time_limit"),
            "currentAttempt": limits["current_attempt"],
            "maxAttempts": limits["max_attempts"],
        },
        message="Assessment started",
        status_code=201,
    )


async def _submit_attempt(request: Request, db, user: dict, attempt_id: str):
    body = await read_body(request, SubmitAttemptRequest)
    if not isinstance(body.answers, dict):
        raise ApiError("Invalid answers", "VALIDATION_ERROR")

    attempt = await _get_owned_attempt(db, attempt_id, user)
    if attempt["status"] != AttemptStatus.IN_PROGRESS.value:
        raise ApiError("Already submitted", "ALREADY_SUBMITTED", 400)

    assessment = await lms.get_assessment(db, attempt["assessment_id"])
    if not assessment:
        raise ApiError("Assessment not found", "NOT_FOUND", 404)

    # The client's timeSpent is advisory; the server clock decides
    time_spent = _seconds_since(attempt["started_at"])
    questions = await lms.list_questions(db, assessment["id"])
    results = score_answers(questions, body.answers, assessment.get("passing_score"))
    results.attempt_id = attempt_id

    updated = await lms.update_attempt(
        db,
        attempt_id,
        status=AttemptStatus.COMPLETED.value,
        completed_at=lms.utcnow_iso(),
        time_spent=time_spent,
        answers=body.answers,
        score=results.score,
        total_points=results.total_points,
        percentage=results.percentage,
        passed=results.passed,
    )
    logger.info(
        f"Attempt {attempt_id} submitted: {results.percentage}% "
        f"({'passed' if results.passed else 'failed'})"
    )

    await update_lesson_progress_after_assessment(
        db, assessment, attempt["user_id"], attempt["enrollment_id"], results.passed
    )
    await update_enrollment_statistics(db, assessment, attempt["enrollment_id"], results.percentage)

    return success_response({"attempt": _serialize_attempt(updated), "results": results.to_api()})


@router.post("")
async def post_attempt(
    request: Request,
    id: Optional[str] = None,
    submit: Optional[str] = None,
    db=Depends(get_db),
):
    """Start an attempt, or finalize one with ``?id=&submit=true``."""
    user = await get_current_user(request)
    if parse_boolean(submit):
        return await _submit_attempt(request, db, user, validate_id(id))
    return await _start_attempt(request, db, user)


# ── Save / abandon ───────────────────────────────────────────────────

@router.put("")
async def put_attempt(
    request: Request,
    id: Optional[str] = None,
    abandon: Optional[str] = None,
    db=Depends(get_db),
):
    """Save answers and keep the attempt open, or abandon it with ``&abandon=true``."""
    user = await get_current_user(request)
    attempt_id = validate_id(id)
    attempt = await _get_owned_attempt(db, attempt_id, user)

    if attempt["status"] != AttemptStatus.IN_PROGRESS.value:
        raise ApiError("Attempt is not in progress", "INVALID_STATUS", 400)

    if parse_boolean(abandon):
        updated = await lms.update_attempt(
            db, attempt_id, status=AttemptStatus.ABANDONED.value, completed_at=lms.utcnow_iso()
        )
        logger.info(f"Attempt {attempt_id} abandoned")
        return success_response(_serialize_attempt(updated), message="Assessment abandoned")

    body = await read_body(request, SaveAttemptRequest)
    if not isinstance(body.answers, dict):
        raise ApiError("Invalid answers", "VALIDATION_ERROR")
    if body.status != AttemptStatus.IN_PROGRESS:
        raise ApiError("Saved attempts must stay IN_PROGRESS", "INVALID_STATUS", 400)

    updated = await lms.update_attempt(db, attempt_id, answers=body.answers)
    return success_response(_serialize_attempt(updated), message="Progress saved")


# ── Read ─────────────────────────────────────────────────────────────

async def _get_results(db, user: dict, attempt_id: str, user_id: str):
    require_user_match(user, user_id)
    attempt = await lms.get_attempt(db, attempt_id)
    if not attempt:
        raise ApiError("Attempt not found", "NOT_FOUND", 404)
    if attempt["user_id"] != user_id:
        raise ApiError("Access denied", "FORBIDDEN", 403)
    if attempt["status"] != AttemptStatus.COMPLETED.value:
        raise ApiError("Attempt not completed", "NOT_COMPLETED", 400)

    assessment = await lms.get_assessment(db, attempt["assessment_id"])
    correct_answers = None
    detailed_results = None

    if assessment and assessment.get("show_correct_answers"):
        questions = await lms.list_questions(db, assessment["id"])
        scored = score_answers(questions, attempt.get("answers") or {}, assessment.get("passing_score"))
        detailed_results = [r.to_api() for r in scored.detailed_results]
        correct_answers = {q["id"]: q.get("correct_answer") for q in questions}

    return success_response({
        "attempt": _serialize_attempt(attempt),
        "assessment": {
            "title": assessment["title"] if assessment else None,
            "passingScore": assessment.get("passing_score") if assessment else None,
            "showCorrectAnswers": bool(assessment and assessment.get("show_correct_answers")),
        },
        "correctAnswers": correct_answers,
        "detailedResults": detailed_results,
    })


@router.get("")
async def get_attempts(
    request: Request,
    id: Optional[str] = None,
    userId: Optional[str] = None,
    assessmentId: Optional[str] = None,
    enrollmentId: Optional[str] = None,
    results: Optional[str] = None,
    db=Depends(get_db),
):
    user = await get_current_user(request)

    if parse_boolean(results) and id and userId:
        return await _get_results(db, user, validate_id(id), validate_id(userId, "User ID"))

    if id:
        attempt = await _get_owned_attempt(db, validate_id(id), user)
        return success_response(_serialize_attempt(attempt))

    if userId:
        validate_id(userId, "User ID")
        require_user_match(user, userId)
        rows = await lms.list_user_attempts(
            db,
            userId,
            assessment_id=validate_optional_id(assessmentId, "Assessment ID"),
            enrollment_id=validate_optional_id(enrollmentId, "Enrollment ID"),
        )
        attempts = []
        for row in rows:
            data = _serialize_attempt(row)
            data["assessmentTitle"] = row.get("assessment_title")
            data["assessmentLevel"] = row.get("assessment_level")
            attempts.append(data)
        return success_response(attempts)

    raise ApiError("id or userId required", "VALIDATION_ERROR")


@router.delete("")
async def delete_attempt(request: Request, id: Optional[str] = None, db=Depends(get_db)):
    user = await get_current_user(request)
    require_admin(user)
    attempt_id = validate_id(id)

    if not await lms.get_attempt(db, attempt_id):
        raise ApiError("Attempt not found", "NOT_FOUND", 404)
    await lms.delete_attempt(db, attempt_id)
    logger.info(f"Attempt {attempt_id} deleted by admin {user['id']}")
    return success_response({"id": attempt_id}, message="Deleted")
