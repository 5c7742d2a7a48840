"""
lms.py - Database helper queries for courses, assessments and learner progress

Provides insert/fetch/update functions for:
- courses, course_modules, course_lessons, lesson_completion_rules
- assessments, assessment_questions
- enrollments
- assessment_attempts
- lesson_progress

Rows come back as plain dicts with snake_case keys; JSON columns are decoded
and 0/1 flag columns become bools.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any


JSON_FIELDS = {"options", "answers", "resources_viewed"}

BOOL_FIELDS = {
    "has_assessment", "assessment_required", "has_quiz", "quiz_required",
    "require_video_watched", "require_resources_viewed", "require_quiz_passed",
    "allow_retake", "show_correct_answers", "randomize_questions", "is_required",
    "is_active", "certificate_eligible", "passed", "is_completed",
    "quiz_attempted", "quiz_passed",
}

# Columns a caller may change through the update helpers
ENROLLMENT_COLUMNS = {
    "status", "progress", "completed_lessons", "total_lessons",
    "completed_assessments", "total_assessments", "average_quiz_score",
    "final_assessment_score", "overall_score", "certificate_eligible",
    "last_accessed_at", "completed_at",
}
ATTEMPT_COLUMNS = {
    "status", "score", "total_points", "percentage", "passed",
    "completed_at", "time_spent", "answers",
}
PROGRESS_COLUMNS = {
    "is_completed", "completed_at", "last_watched_position", "watch_duration",
    "video_percentage_watched", "resources_viewed", "quiz_attempted", "quiz_passed",
}


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_dict(row) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    result = dict(row)
    for key, value in result.items():
        if key in JSON_FIELDS and isinstance(value, str):
            try:
                result[key] = json.loads(value)
            except json.JSONDecodeError:
                result[key] = None
        elif key in BOOL_FIELDS and value is not None:
            result[key] = bool(value)
    return result


def _encode(value):
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


async def _fetch_one(db, sql: str, params: tuple = ()) -> Optional[Dict[str, Any]]:
    cursor = await db.execute(sql, params)
    return _row_to_dict(await cursor.fetchone())


async def _fetch_all(db, sql: str, params: tuple = ()) -> List[Dict[str, Any]]:
    cursor = await db.execute(sql, params)
    return [_row_to_dict(r) for r in await cursor.fetchall()]


async def _insert(db, table: str, values: Dict[str, Any]) -> None:
    columns = ", ".join(values)
    marks = ", ".join("?" for _ in values)
    await db.execute(
        f"INSERT INTO {table} ({columns}) VALUES ({marks})",
        tuple(_encode(v) for v in values.values()),
    )
    await db.commit()


async def _update(db, table: str, row_id: str, fields: Dict[str, Any], allowed: set) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Cannot update {table} columns: {sorted(unknown)}")
    fields = dict(fields, updated_at=utcnow_iso())
    assignments = ", ".join(f"{col} = ?" for col in fields)
    await db.execute(
        f"UPDATE {table} SET {assignments} WHERE id = ?",
        tuple(_encode(v) for v in fields.values()) + (row_id,),
    )
    await db.commit()


# ══════════════════════════════════════════════════════════════════════════════
# COURSE CONTENT
# ══════════════════════════════════════════════════════════════════════════════

async def create_course(db, title: str, slug: Optional[str] = None) -> str:
    course_id = new_id()
    await _insert(db, "courses", {
        "id": course_id, "title": title, "slug": slug, "created_at": utcnow_iso(),
    })
    return course_id


async def get_course(db, course_id: str) -> Optional[Dict[str, Any]]:
    return await _fetch_one(db, "SELECT * FROM courses WHERE id = ?", (course_id,))


async def create_module(
    db,
    course_id: str,
    title: str,
    sort_order: int = 0,
    has_assessment: bool = False,
    assessment_required: bool = False,
    minimum_passing_score: Optional[int] = None,
) -> str:
    module_id = new_id()
    await _insert(db, "course_modules", {
        "id": module_id,
        "course_id": course_id,
        "title": title,
        "sort_order": sort_order,
        "has_assessment": has_assessment,
        "assessment_required": assessment_required,
        "minimum_passing_score": minimum_passing_score,
    })
    return module_id


async def get_module(db, module_id: str) -> Optional[Dict[str, Any]]:
    return await _fetch_one(db, "SELECT * FROM course_modules WHERE id = ?", (module_id,))


async def create_lesson(db, course_id: str, module_id: str, title: str, **fields) -> str:
    """Create a lesson. ``fields`` are optional course_lessons columns."""
    lesson_id = new_id()
    await _insert(db, "course_lessons", {
        "id": lesson_id, "course_id": course_id, "module_id": module_id, "title": title, **fields,
    })
    return lesson_id


async def get_lesson(db, lesson_id: str) -> Optional[Dict[str, Any]]:
    return await _fetch_one(db, "SELECT * FROM course_lessons WHERE id = ?", (lesson_id,))


async def list_course_lessons(db, course_id: str) -> List[Dict[str, Any]]:
    """All lessons of a course in curriculum order, with their module title."""
    return await _fetch_all(
        db,
        """SELECT l.*, m.title AS module_title
           FROM course_lessons l
           JOIN course_modules m ON m.id = l.module_id
           WHERE l.course_id = ?
           ORDER BY m.sort_order, l.sort_order""",
        (course_id,),
    )


async def list_course_modules(db, course_id: str) -> List[Dict[str, Any]]:
    return await _fetch_all(
        db,
        "SELECT * FROM course_modules WHERE course_id = ? ORDER BY sort_order",
        (course_id,),
    )


async def set_completion_rules(
    db,
    lesson_id: str,
    require_video_watched: bool = False,
    min_video_watch_percentage: int = 90,
    require_resources_viewed: bool = False,
    require_quiz_passed: bool = False,
) -> None:
    await db.execute("DELETE FROM lesson_completion_rules WHERE lesson_id = ?", (lesson_id,))
    await _insert(db, "lesson_completion_rules", {
        "id": new_id(),
        "lesson_id": lesson_id,
        "require_video_watched": require_video_watched,
        "min_video_watch_percentage": min_video_watch_percentage,
        "require_resources_viewed": require_resources_viewed,
        "require_quiz_passed": require_quiz_passed,
    })


async def get_completion_rules(db, lesson_id: str) -> Optional[Dict[str, Any]]:
    return await _fetch_one(
        db, "SELECT * FROM lesson_completion_rules WHERE lesson_id = ?", (lesson_id,)
    )


# ══════════════════════════════════════════════════════════════════════════════
# ASSESSMENTS
# ══════════════════════════════════════════════════════════════════════════════

async def create_assessment(db, course_id: str, title: str, **fields) -> str:
    """Create an assessment. ``fields`` are optional assessments columns."""
    assessment_id = new_id()
    await _insert(db, "assessments", {
        "id": assessment_id,
        "course_id": course_id,
        "title": title,
        "created_at": utcnow_iso(),
        **fields,
    })
    return assessment_id


async def get_assessment(db, assessment_id: str) -> Optional[Dict[str, Any]]:
    return await _fetch_one(db, "SELECT * FROM assessments WHERE id = ?", (assessment_id,))


async def list_course_assessments(db, course_id: str) -> List[Dict[str, Any]]:
    return await _fetch_all(
        db,
        "SELECT * FROM assessments WHERE course_id = ? ORDER BY assessment_level, title",
        (course_id,),
    )


async def get_lesson_quiz(db, lesson_id: str) -> Optional[Dict[str, Any]]:
    return await _fetch_one(
        db,
        """SELECT * FROM assessments
           WHERE lesson_id = ? AND assessment_level = 'LESSON_QUIZ'
           LIMIT 1""",
        (lesson_id,),
    )


async def get_module_assessment(db, module_id: str) -> Optional[Dict[str, Any]]:
    return await _fetch_one(
        db,
        """SELECT * FROM assessments
           WHERE module_id = ? AND assessment_level = 'MODULE_ASSESSMENT'
           LIMIT 1""",
        (module_id,),
    )


async def get_final_assessment(db, course_id: str) -> Optional[Dict[str, Any]]:
    return await _fetch_one(
        db,
        """SELECT * FROM assessments
           WHERE course_id = ? AND assessment_level = 'COURSE_FINAL'
           LIMIT 1""",
        (course_id,),
    )


async def create_question(
    db,
    assessment_id: str,
    question_text: str,
    question_type: str,
    correct_answer: Optional[str] = None,
    options: Optional[List[str]] = None,
    points: int = 1,
    negative_points: int = 0,
    sort_order: int = 0,
    **fields,
) -> str:
    question_id = new_id()
    await _insert(db, "assessment_questions", {
        "id": question_id,
        "assessment_id": assessment_id,
        "question_text": question_text,
        "question_type": question_type,
        "correct_answer": correct_answer,
        "options": options,
        "points": points,
        "negative_points": negative_points,
        "sort_order": sort_order,
        **fields,
    })
    return question_id


async def list_questions(db, assessment_id: str, active_only: bool = True) -> List[Dict[str, Any]]:
    sql = "SELECT * FROM assessment_questions WHERE assessment_id = ?"
    if active_only:
        sql += " AND is_active = 1"
    return await _fetch_all(db, sql + " ORDER BY sort_order", (assessment_id,))


# ══════════════════════════════════════════════════════════════════════════════
# ENROLLMENTS
# ══════════════════════════════════════════════════════════════════════════════

async def create_enrollment(db, user_id: str, course_id: str) -> str:
    enrollment_id = new_id()
    now = utcnow_iso()
    await _insert(db, "enrollments", {
        "id": enrollment_id,
        "user_id": user_id,
        "course_id": course_id,
        "created_at": now,
        "updated_at": now,
    })
    return enrollment_id


async def get_enrollment(db, enrollment_id: str) -> Optional[Dict[str, Any]]:
    return await _fetch_one(db, "SELECT * FROM enrollments WHERE id = ?", (enrollment_id,))


async def find_enrollment(db, user_id: str, course_id: str) -> Optional[Dict[str, Any]]:
    return await _fetch_one(
        db,
        "SELECT * FROM enrollments WHERE user_id = ? AND course_id = ? LIMIT 1",
        (user_id, course_id),
    )


async def list_user_enrollments(db, user_id: str) -> List[Dict[str, Any]]:
    return await _fetch_all(
        db,
        "SELECT * FROM enrollments WHERE user_id = ? ORDER BY created_at",
        (user_id,),
    )


async def update_enrollment(db, enrollment_id: str, **fields) -> Optional[Dict[str, Any]]:
    await _update(db, "enrollments", enrollment_id, fields, ENROLLMENT_COLUMNS)
    return await get_enrollment(db, enrollment_id)


# ══════════════════════════════════════════════════════════════════════════════
# ASSESSMENT ATTEMPTS
# ══════════════════════════════════════════════════════════════════════════════

async def create_attempt(
    db,
    assessment_id: str,
    user_id: str,
    enrollment_id: str,
    attempt_number: int,
    total_points: int,
) -> Dict[str, Any]:
    attempt_id = new_id()
    now = utcnow_iso()
    await _insert(db, "assessment_attempts", {
        "id": attempt_id,
        "assessment_id": assessment_id,
        "user_id": user_id,
        "enrollment_id": enrollment_id,
        "attempt_number": attempt_number,
        "status": "IN_PROGRESS",
        "total_points": total_points,
        "started_at": now,
        "answers": {},
        "updated_at": now,
    })
    return await get_attempt(db, attempt_id)


async def get_attempt(db, attempt_id: str) -> Optional[Dict[str, Any]]:
    return await _fetch_one(db, "SELECT * FROM assessment_attempts WHERE id = ?", (attempt_id,))


async def update_attempt(db, attempt_id: str, **fields) -> Optional[Dict[str, Any]]:
    await _update(db, "assessment_attempts", attempt_id, fields, ATTEMPT_COLUMNS)
    return await get_attempt(db, attempt_id)


async def delete_attempt(db, attempt_id: str) -> None:
    await db.execute("DELETE FROM assessment_attempts WHERE id = ?", (attempt_id,))
    await db.commit()


async def count_attempts(db, assessment_id: str, user_id: str, enrollment_id: str) -> int:
    cursor = await db.execute(
        """SELECT COUNT(*) AS cnt FROM assessment_attempts
           WHERE assessment_id = ? AND user_id = ? AND enrollment_id = ?""",
        (assessment_id, user_id, enrollment_id),
    )
    row = await cursor.fetchone()
    return row["cnt"] if row else 0


async def find_passed_attempt(
    db, assessment_id: str, user_id: str, enrollment_id: str
) -> Optional[Dict[str, Any]]:
    return await _fetch_one(
        db,
        """SELECT * FROM assessment_attempts
           WHERE assessment_id = ? AND user_id = ? AND enrollment_id = ?
             AND status = 'COMPLETED' AND passed = 1
           ORDER BY attempt_number DESC
           LIMIT 1""",
        (assessment_id, user_id, enrollment_id),
    )


async def latest_attempt(
    db, assessment_id: str, user_id: str, enrollment_id: str
) -> Optional[Dict[str, Any]]:
    return await _fetch_one(
        db,
        """SELECT * FROM assessment_attempts
           WHERE assessment_id = ? AND user_id = ? AND enrollment_id = ?
           ORDER BY attempt_number DESC
           LIMIT 1""",
        (assessment_id, user_id, enrollment_id),
    )


async def list_user_attempts(
    db,
    user_id: str,
    assessment_id: Optional[str] = None,
    enrollment_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    sql = """SELECT aa.*, a.title AS assessment_title, a.assessment_level
             FROM assessment_attempts aa
             JOIN assessments a ON a.id = aa.assessment_id
             WHERE aa.user_id = ?"""
    params: list = [user_id]
    if assessment_id:
        sql += " AND aa.assessment_id = ?"
        params.append(assessment_id)
    if enrollment_id:
        sql += " AND aa.enrollment_id = ?"
        params.append(enrollment_id)
    return await _fetch_all(db, sql + " ORDER BY aa.started_at DESC", tuple(params))


async def average_completed_percentage(db, enrollment_id: str, level: str) -> Optional[float]:
    """Average percentage of completed attempts at one assessment level."""
    cursor = await db.execute(
        """SELECT AVG(aa.percentage) AS avg_pct
           FROM assessment_attempts aa
           JOIN assessments a ON a.id = aa.assessment_id
           WHERE aa.enrollment_id = ? AND aa.status = 'COMPLETED'
             AND a.assessment_level = ?""",
        (enrollment_id, level),
    )
    row = await cursor.fetchone()
    if not row or row["avg_pct"] is None:
        return None
    # asyncpg returns numeric AVG as Decimal
    return float(row["avg_pct"])


async def count_passed_assessments(
    db, user_id: str, enrollment_id: str, course_id: str, level: str
) -> int:
    """Distinct assessments of a level the user has passed within one enrollment."""
    cursor = await db.execute(
        """SELECT COUNT(DISTINCT aa.assessment_id) AS cnt
           FROM assessment_attempts aa
           JOIN assessments a ON a.id = aa.assessment_id
           WHERE aa.user_id = ? AND aa.enrollment_id = ? AND a.course_id = ?
             AND a.assessment_level = ? AND aa.status = 'COMPLETED' AND aa.passed = 1""",
        (user_id, enrollment_id, course_id, level),
    )
    row = await cursor.fetchone()
    return row["cnt"] if row else 0


# ══════════════════════════════════════════════════════════════════════════════
# LESSON PROGRESS
# ══════════════════════════════════════════════════════════════════════════════

async def get_lesson_progress(db, user_id: str, lesson_id: str) -> Optional[Dict[str, Any]]:
    return await _fetch_one(
        db,
        "SELECT * FROM lesson_progress WHERE user_id = ? AND lesson_id = ? LIMIT 1",
        (user_id, lesson_id),
    )


async def upsert_lesson_progress(
    db, user_id: str, lesson_id: str, enrollment_id: str, fields: Dict[str, Any]
) -> Dict[str, Any]:
    """Merge ``fields`` into the user's progress row for a lesson, creating it if needed.

    Writes are last-write-wins: no version check is made against concurrent updates.
    """
    existing = await get_lesson_progress(db, user_id, lesson_id)
    if existing:
        if fields:
            await _update(db, "lesson_progress", existing["id"], fields, PROGRESS_COLUMNS)
    else:
        unknown = set(fields) - PROGRESS_COLUMNS
        if unknown:
            raise ValueError(f"Cannot set lesson_progress columns: {sorted(unknown)}")
        now = utcnow_iso()
        await _insert(db, "lesson_progress", {
            "id": new_id(),
            "user_id": user_id,
            "lesson_id": lesson_id,
            "enrollment_id": enrollment_id,
            "created_at": now,
            "updated_at": now,
            **fields,
        })
    return await get_lesson_progress(db, user_id, lesson_id)


async def count_completed_lessons(db, user_id: str) -> int:
    cursor = await db.execute(
        "SELECT COUNT(*) AS cnt FROM lesson_progress WHERE user_id = ? AND is_completed = 1",
        (user_id,),
    )
    row = await cursor.fetchone()
    return row["cnt"] if row else 0
