"""Server-side lesson completion rules and enrollment progress roll-up."""

import logging
from typing import Dict, Any, Optional

from futuretek.config import settings
from futuretek.db import lms
from futuretek.models.base import round_half_up

logger = logging.getLogger(__name__)


async def check_lesson_quiz(db, lesson: Dict[str, Any], user_id: str, enrollment_id: str) -> Dict[str, Any]:
    """Whether the lesson has a required quiz and whether the user has passed it."""
    if not lesson.get("has_quiz") or not lesson.get("quiz_required"):
        return {"quiz_required": False, "quiz_passed": True}

    quiz = await lms.get_lesson_quiz(db, lesson["id"])
    if not quiz:
        return {"quiz_required": False, "quiz_passed": True}

    passed = await lms.find_passed_attempt(db, quiz["id"], user_id, enrollment_id)
    return {"quiz_required": True, "quiz_passed": passed is not None, "assessment_id": quiz["id"]}


def is_lesson_complete(
    rules: Optional[Dict[str, Any]],
    progress: Optional[Dict[str, Any]],
    quiz_passed: bool,
) -> bool:
    """A lesson counts as complete only when it was marked complete and every rule holds."""
    if not progress or not progress.get("is_completed"):
        return False
    rules = rules or {}

    if rules.get("require_video_watched"):
        minimum = rules.get("min_video_watch_percentage") or settings.default_min_video_watch_percentage
        if (progress.get("video_percentage_watched") or 0) < minimum:
            return False

    if rules.get("require_quiz_passed") and not quiz_passed:
        return False

    if rules.get("require_resources_viewed"):
        viewed = progress.get("resources_viewed")
        if not isinstance(viewed, dict) or not viewed:
            return False

    return True


async def lesson_status(db, lesson: Dict[str, Any], user_id: str, enrollment_id: str) -> Dict[str, Any]:
    progress = await lms.get_lesson_progress(db, user_id, lesson["id"])
    rules = await lms.get_completion_rules(db, lesson["id"])
    quiz_result = await check_lesson_quiz(db, lesson, user_id, enrollment_id)
    return {
        "progress": progress,
        "rules": rules,
        "quiz_result": quiz_result,
        "is_complete": is_lesson_complete(rules, progress, quiz_result["quiz_passed"]),
    }


async def recompute_enrollment_progress(db, enrollment_id: str, course_id: str, user_id: str) -> Dict[str, Any]:
    """Recount completed lessons and passed assessments and store them on the enrollment."""
    lessons = await lms.list_course_lessons(db, course_id)
    completed = 0
    for lesson in lessons:
        status = await lesson_status(db, lesson, user_id, enrollment_id)
        if status["is_complete"]:
            completed += 1

    total = len(lessons)
    progress = round_half_up(completed / total * 100) if total > 0 else 0

    modules = await lms.list_course_modules(db, course_id)
    final = await lms.get_final_assessment(db, course_id)
    total_assessments = sum(1 for m in modules if m.get("has_assessment"))
    if final and final.get("is_required"):
        total_assessments += 1

    passed_assessments = (
        await lms.count_passed_assessments(db, user_id, enrollment_id, course_id, "MODULE_ASSESSMENT")
        + await lms.count_passed_assessments(db, user_id, enrollment_id, course_id, "COURSE_FINAL")
    )

    stats = {
        "progress": progress,
        "completed_lessons": completed,
        "total_lessons": total,
        "completed_assessments": passed_assessments,
        "total_assessments": total_assessments,
    }
    await lms.update_enrollment(db, enrollment_id, last_accessed_at=lms.utcnow_iso(), **stats)
    logger.debug(f"Enrollment {enrollment_id} progress: {completed}/{total} lessons")
    return stats
