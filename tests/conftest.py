"""Shared fixtures: a migrated temporary SQLite database, the ASGI app and seeded course data."""

import os
import uuid

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("ENV", "dev")
os.environ.setdefault("JWT_SECRET", "test-secret-for-the-learner-api-0123456789")
os.environ.setdefault("DATABASE_PATH", "test_futuretek_lms.db")

import httpx
import pytest

from futuretek.config import settings


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    from futuretek.db.database import run_migrations

    path = str(tmp_path / "lms.db")
    monkeypatch.setattr(settings, "database_path", path)
    monkeypatch.setattr(settings, "database_url", "")
    run_migrations()
    return path


@pytest.fixture
async def db(db_path):
    from futuretek.db.database import connect

    async with connect() as conn:
        yield conn


@pytest.fixture
async def api(db_path):
    from futuretek.server import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def auth_headers(user_id: str, role: str = "student") -> dict:
    from futuretek.routes.auth import create_access_token

    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest.fixture
def headers():
    """Factory for bearer headers: headers(user_id, role="student")."""
    return auth_headers


@pytest.fixture
async def course(db):
    """A course with one module, a video lesson with a required lesson quiz, and one enrolled student.

    The quiz has two multiple-choice questions and one true/false question,
    one point each, passing score 60.
    """
    from futuretek.db import lms

    user_id = str(uuid.uuid4())
    course_id = await lms.create_course(db, "Vedic Astrology Foundations", "vedic-foundations")
    module_id = await lms.create_module(db, course_id, "The Grahas", sort_order=1)
    lesson_id = await lms.create_lesson(
        db,
        course_id,
        module_id,
        "Sun and Moon",
        content_type="VIDEO",
        video_url="https://cdn.example.com/sun-moon.mp4",
        video_duration=600,
        sort_order=1,
        has_quiz=True,
        quiz_required=True,
    )
    await lms.set_completion_rules(
        db, lesson_id, require_video_watched=True, min_video_watch_percentage=90, require_quiz_passed=True
    )
    quiz_id = await lms.create_assessment(
        db,
        course_id,
        "Grahas quiz",
        module_id=module_id,
        lesson_id=lesson_id,
        assessment_level="LESSON_QUIZ",
        passing_score=60,
    )
    q1 = await lms.create_question(
        db, quiz_id, "Which graha rules Leo?", "MULTIPLE_CHOICE",
        correct_answer="Sun", options=["Sun", "Moon", "Mars"], sort_order=1,
        explanation="Simha is ruled by Surya.",
    )
    q2 = await lms.create_question(
        db, quiz_id, "Which graha rules Cancer?", "MULTIPLE_CHOICE",
        correct_answer="Moon", options=["Sun", "Moon", "Venus"], sort_order=2,
    )
    q3 = await lms.create_question(
        db, quiz_id, "Rahu is a shadow planet.", "TRUE_FALSE",
        correct_answer="True", options=["True", "False"], sort_order=3,
    )
    enrollment_id = await lms.create_enrollment(db, user_id, course_id)

    return {
        "user_id": user_id,
        "course_id": course_id,
        "module_id": module_id,
        "lesson_id": lesson_id,
        "quiz_id": quiz_id,
        "question_ids": [q1, q2, q3],
        "enrollment_id": enrollment_id,
    }
