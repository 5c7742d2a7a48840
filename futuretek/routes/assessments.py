"""Assessment definitions for the learner player and staff screens."""

import logging
import random
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request

from futuretek.db import lms
from futuretek.db.database import get_db
from futuretek.models.assessment import Assessment, Question
from futuretek.routes.auth import get_current_user, is_staff
from futuretek.routes.envelope import ApiError, success_response, validate_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assessments", tags=["assessments"])

# Answer-key fields learners never receive before submitting
HIDDEN_QUESTION_FIELDS = ("correctAnswer", "explanation")


def serialize_questions(rows: List[Dict[str, Any]], include_answers: bool) -> List[dict]:
    questions = []
    for row in rows:
        data = Question.model_validate(row).to_api()
        if not include_answers:
            for key in HIDDEN_QUESTION_FIELDS:
                data.pop(key, None)
        questions.append(data)
    return questions


async def _load_assessment(db, assessment_id: str, include_answers: bool) -> Optional[dict]:
    row = await lms.get_assessment(db, assessment_id)
    if not row:
        return None

    question_rows = await lms.list_questions(db, assessment_id)
    if row.get("randomize_questions") and not include_answers:
        question_rows = random.sample(question_rows, len(question_rows))

    course = await lms.get_course(db, row["course_id"]) if row.get("course_id") else None
    module = await lms.get_module(db, row["module_id"]) if row.get("module_id") else None
    lesson = await lms.get_lesson(db, row["lesson_id"]) if row.get("lesson_id") else None

    data = Assessment.model_validate({
        **row,
        "course_title": course["title"] if course else None,
        "module_title": module["title"] if module else None,
        "lesson_title": lesson["title"] if lesson else None,
    }).to_api()
    data["questions"] = serialize_questions(question_rows, include_answers)
    return data


@router.get("")
async def get_assessments(
    request: Request,
    id: Optional[str] = None,
    courseId: Optional[str] = None,
    db=Depends(get_db),
):
    """Fetch one assessment with its questions (``?id=``) or a course's assessments (``?courseId=``)."""
    user = await get_current_user(request)

    if id:
        validate_id(id)
        data = await _load_assessment(db, id, include_answers=is_staff(user))
        if not data:
            raise ApiError("Assessment not found", "NOT_FOUND", 404)
        return success_response(data)

    if courseId:
        validate_id(courseId, "Course ID")
        rows = await lms.list_course_assessments(db, courseId)
        return success_response([Assessment.model_validate(r).to_api() for r in rows])

    raise ApiError("Assessment ID or course ID is required", "VALIDATION_ERROR")
