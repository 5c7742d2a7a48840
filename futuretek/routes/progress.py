"""Learner progress: per-lesson progress, course roll-ups and lesson completion."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from futuretek.db import lms
from futuretek.db.database import get_db
from futuretek.models.lesson import (
    CompletionRules,
    CourseProgressUpdate,
    LessonProgress,
    LessonProgressUpdate,
)
from futuretek.routes.auth import get_current_user, require_user_match
from futuretek.routes.envelope import ApiError, parse_boolean, read_body, success_response, validate_id
from futuretek.services.completion import check_lesson_quiz, lesson_status, recompute_enrollment_progress

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/progress", tags=["progress"])


# ── Helpers ──────────────────────────────────────────────────────────

async def _lesson_and_enrollment(db, lesson_id: str, user_id: str, not_enrolled_status: int = 404):
    lesson = await lms.get_lesson(db, lesson_id)
    if not lesson:
        raise ApiError("Lesson not found", "NOT_FOUND", 404)
    enrollment = await lms.find_enrollment(db, user_id, lesson["course_id"])
    if not enrollment:
        raise ApiError("Not enrolled in this course", "NOT_ENROLLED", not_enrolled_status)
    return lesson, enrollment


def _serialize_progress(row: Dict[str, Any]) -> dict:
    return LessonProgress.model_validate(row).to_api()


def _quiz_result(result: Dict[str, Any]) -> dict:
    data = {"quizRequired": result["quiz_required"], "quizPassed": result["quiz_passed"]}
    if result.get("assessment_id"):
        data["assessmentId"] = result["assessment_id"]
    return data


async def _assessment_status(db, assessment: Dict[str, Any], user_id: str, enrollment_id: str) -> dict:
    latest = await lms.latest_attempt(db, assessment["id"], user_id, enrollment_id)
    return {
        "passed": bool(latest and latest.get("passed")),
        "attempted": latest is not None,
        "latestScore": (latest.get("percentage") or 0) if latest else 0,
        "latestAttemptId": latest["id"] if latest else None,
    }


# ── Reads ────────────────────────────────────────────────────────────

async def _get_lesson_progress(db, lesson_id: str, user_id: str):
    _, enrollment = await _lesson_and_enrollment(db, lesson_id, user_id)
    progress = await lms.get_lesson_progress(db, user_id, lesson_id)
    if not progress:
        progress = {"lesson_id": lesson_id, "user_id": user_id, "enrollment_id": enrollment["id"]}
    return success_response(_serialize_progress(progress))


async def _get_course_progress(db, course_id: str, user_id: str):
    enrollment = await lms.find_enrollment(db, user_id, course_id)
    if not enrollment:
        raise ApiError("Not enrolled in this course", "NOT_ENROLLED", 404)

    stats = await recompute_enrollment_progress(db, enrollment["id"], course_id, user_id)
    enrollment = await lms.get_enrollment(db, enrollment["id"])

    lessons_progress = []
    for lesson in await lms.list_course_lessons(db, course_id):
        status = await lesson_status(db, lesson, user_id, enrollment["id"])
        progress = status["progress"]
        lessons_progress.append({
            "id": lesson["id"],
            "title": lesson["title"],
            "moduleId": lesson["module_id"],
            "moduleTitle": lesson.get("module_title"),
            "contentType": lesson.get("content_type"),
            "hasQuiz": bool(lesson.get("has_quiz")),
            "quizRequired": bool(lesson.get("quiz_required")),
            "progress": _serialize_progress(progress) if progress else None,
            "isComplete": status["is_complete"],
            "completionRules": CompletionRules.model_validate(status["rules"]).to_api() if status["rules"] else None,
            "quizResult": _quiz_result(status["quiz_result"]),
        })

    module_status = []
    for module in await lms.list_course_modules(db, course_id):
        assessment = await lms.get_module_assessment(db, module["id"])
        entry = {
            "moduleId": module["id"],
            "moduleTitle": module["title"],
            "assessmentId": assessment["id"] if assessment else None,
            "assessmentTitle": assessment["title"] if assessment else None,
            "hasAssessment": bool(module.get("has_assessment")),
            "assessmentRequired": bool(module.get("assessment_required")),
            "minimumPassingScore": module.get("minimum_passing_score"),
        }
        if not assessment or not module.get("has_assessment"):
            entry.update(passed=True, attempted=False)
        else:
            entry.update(await _assessment_status(db, assessment, user_id, enrollment["id"]))
        module_status.append(entry)

    final_status = None
    final = await lms.get_final_assessment(db, course_id)
    if final:
        final_status = {
            "id": final["id"],
            "title": final["title"],
            "passingScore": final.get("passing_score"),
            "isRequired": bool(final.get("is_required")),
            **await _assessment_status(db, final, user_id, enrollment["id"]),
        }

    return success_response({
        "enrollmentId": enrollment["id"],
        "courseId": course_id,
        "overallProgress": stats["progress"],
        "completedLessons": stats["completed_lessons"],
        "totalLessons": stats["total_lessons"],
        "completedAssessments": stats["completed_assessments"],
        "totalAssessments": stats["total_assessments"],
        "status": enrollment.get("status"),
        "completedAt": enrollment.get("completed_at"),
        "overallScore": enrollment.get("overall_score"),
        "certificateEligible": bool(enrollment.get("certificate_eligible")),
        "lessonsProgress": lessons_progress,
        "moduleAssessmentStatus": module_status,
        "finalAssessmentStatus": final_status,
    })


async def _get_overview(db, user_id: str):
    enrollments = await lms.list_user_enrollments(db, user_id)
    return success_response({
        "totalCourses": len(enrollments),
        "completedLessons": await lms.count_completed_lessons(db, user_id),
        "enrollments": [
            {
                "enrollmentId": e["id"],
                "courseId": e["course_id"],
                "progress": e.get("progress") or 0,
                "status": e.get("status"),
            }
            for e in enrollments
        ],
    })


@router.get("")
async def get_progress(
    request: Request,
    userId: Optional[str] = None,
    lessonId: Optional[str] = None,
    courseId: Optional[str] = None,
    overview: Optional[str] = None,
    db=Depends(get_db),
):
    user = await get_current_user(request)
    validate_id(userId, "userId")
    require_user_match(user, userId)

    if parse_boolean(overview):
        return await _get_overview(db, userId)
    if courseId:
        return await _get_course_progress(db, validate_id(courseId), userId)
    if lessonId:
        return await _get_lesson_progress(db, validate_id(lessonId), userId)

    raise ApiError("courseId, lessonId, or overview parameter is required", "VALIDATION_ERROR")


# ── Writes ───────────────────────────────────────────────────────────

async def _update_lesson_progress(request: Request, db, lesson_id: str, user_id: str):
    lesson, enrollment = await _lesson_and_enrollment(db, lesson_id, user_id)
    body = await read_body(request, LessonProgressUpdate)

    # Only the fields the caller sent are merged; concurrent writers race, last one wins
    fields = body.model_dump(exclude_none=True)
    progress = await lms.upsert_lesson_progress(db, user_id, lesson_id, enrollment["id"], fields)
    await recompute_enrollment_progress(db, enrollment["id"], lesson["course_id"], user_id)
    return success_response(_serialize_progress(progress), message="Lesson progress updated")


async def _mark_lesson_complete(db, lesson_id: str, user_id: str):
    lesson, enrollment = await _lesson_and_enrollment(db, lesson_id, user_id, not_enrolled_status=403)
    rules = await lms.get_completion_rules(db, lesson_id) or {}

    if rules.get("require_quiz_passed"):
        quiz = await check_lesson_quiz(db, lesson, user_id, enrollment["id"])
        if quiz["quiz_required"] and not quiz["quiz_passed"]:
            raise ApiError("You must pass the quiz to complete this lesson", "QUIZ_REQUIRED", 403)

    existing = await lms.get_lesson_progress(db, user_id, lesson_id)
    fields = {"is_completed": True}
    if not existing or not existing.get("completed_at"):
        fields["completed_at"] = lms.utcnow_iso()
    if rules.get("require_video_watched"):
        fields["video_percentage_watched"] = 100

    progress = await lms.upsert_lesson_progress(db, user_id, lesson_id, enrollment["id"], fields)
    await recompute_enrollment_progress(db, enrollment["id"], lesson["course_id"], user_id)
    logger.info(f"Lesson {lesson_id} marked complete for {user_id}")
    return success_response(_serialize_progress(progress), message="Lesson marked as complete")


async def _update_course_progress(request: Request, db, course_id: str, user_id: str):
    enrollment = await lms.find_enrollment(db, user_id, course_id)
    if not enrollment:
        raise ApiError("Not enrolled in this course", "NOT_ENROLLED", 404)

    body = await read_body(request, CourseProgressUpdate)
    fields: Dict[str, Any] = {"last_accessed_at": lms.utcnow_iso()}
    if body.progress is not None:
        fields["progress"] = max(0, min(100, body.progress))

    updated = await lms.update_enrollment(db, enrollment["id"], **fields)
    return success_response(
        {
            "id": updated["id"],
            "courseId": updated["course_id"],
            "progress": updated.get("progress") or 0,
            "lastAccessedAt": updated.get("last_accessed_at"),
        },
        message="Progress updated successfully",
    )


@router.put("")
async def put_progress(
    request: Request,
    userId: Optional[str] = None,
    lessonId: Optional[str] = None,
    courseId: Optional[str] = None,
    db=Depends(get_db),
):
    user = await get_current_user(request)
    validate_id(userId, "userId")
    require_user_match(user, userId)

    if lessonId:
        return await _update_lesson_progress(request, db, validate_id(lessonId), userId)
    if courseId:
        return await _update_course_progress(request, db, validate_id(courseId), userId)

    raise ApiError("courseId or lessonId is required", "VALIDATION_ERROR")


@router.post("")
async def post_progress(
    request: Request,
    userId: Optional[str] = None,
    lessonId: Optional[str] = None,
    complete: Optional[str] = None,
    db=Depends(get_db),
):
    user = await get_current_user(request)
    validate_id(userId, "userId")
    validate_id(lessonId, "lessonId")
    require_user_match(user, userId)

    if parse_boolean(complete):
        return await _mark_lesson_complete(db, lessonId, userId)
    return await _update_lesson_progress(request, db, lessonId, userId)
