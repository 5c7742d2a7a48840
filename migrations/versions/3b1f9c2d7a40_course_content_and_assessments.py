"""course_content_and_assessments

Courses, modules, lessons, per-lesson completion rules, assessments and their
questions. These rows are authored by admins/faculty and read by learners.

Revision ID: 3b1f9c2d7a40
Revises:
Create Date: 2026-09-28

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "3b1f9c2d7a40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


TABLES = [
    """
    CREATE TABLE IF NOT EXISTS courses (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        slug TEXT UNIQUE,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS course_modules (
        id TEXT PRIMARY KEY,
        course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        sort_order INTEGER NOT NULL DEFAULT 0,
        has_assessment INTEGER NOT NULL DEFAULT 0,
        assessment_required INTEGER NOT NULL DEFAULT 0,
        minimum_passing_score INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS course_lessons (
        id TEXT PRIMARY KEY,
        course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
        module_id TEXT NOT NULL REFERENCES course_modules(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        description TEXT,
        content_type TEXT NOT NULL DEFAULT 'VIDEO',
        video_url TEXT,
        video_duration INTEGER,
        article_content TEXT,
        sort_order INTEGER NOT NULL DEFAULT 0,
        has_quiz INTEGER NOT NULL DEFAULT 0,
        quiz_required INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS lesson_completion_rules (
        id TEXT PRIMARY KEY,
        lesson_id TEXT NOT NULL UNIQUE REFERENCES course_lessons(id) ON DELETE CASCADE,
        require_video_watched INTEGER NOT NULL DEFAULT 0,
        min_video_watch_percentage INTEGER NOT NULL DEFAULT 90,
        require_resources_viewed INTEGER NOT NULL DEFAULT 0,
        require_quiz_passed INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS assessments (
        id TEXT PRIMARY KEY,
        course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
        module_id TEXT REFERENCES course_modules(id) ON DELETE SET NULL,
        lesson_id TEXT REFERENCES course_lessons(id) ON DELETE SET NULL,
        title TEXT NOT NULL,
        description TEXT,
        assessment_level TEXT NOT NULL DEFAULT 'LESSON_QUIZ',
        passing_score INTEGER,
        time_limit INTEGER,
        max_attempts INTEGER,
        allow_retake INTEGER NOT NULL DEFAULT 1,
        show_correct_answers INTEGER NOT NULL DEFAULT 0,
        randomize_questions INTEGER NOT NULL DEFAULT 0,
        is_required INTEGER NOT NULL DEFAULT 0,
        available_from TEXT,
        available_until TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS assessment_questions (
        id TEXT PRIMARY KEY,
        assessment_id TEXT NOT NULL REFERENCES assessments(id) ON DELETE CASCADE,
        question_text TEXT NOT NULL,
        question_type TEXT NOT NULL,
        difficulty TEXT NOT NULL DEFAULT 'MEDIUM',
        options TEXT,
        correct_answer TEXT,
        explanation TEXT,
        points INTEGER NOT NULL DEFAULT 1,
        negative_points INTEGER NOT NULL DEFAULT 0,
        sort_order INTEGER NOT NULL DEFAULT 0,
        is_active INTEGER NOT NULL DEFAULT 1
    )
    """,
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_course_lessons_course ON course_lessons(course_id)",
    "CREATE INDEX IF NOT EXISTS idx_assessments_course ON assessments(course_id)",
    "CREATE INDEX IF NOT EXISTS idx_assessments_lesson ON assessments(lesson_id)",
    "CREATE INDEX IF NOT EXISTS idx_assessment_questions_assessment "
    "ON assessment_questions(assessment_id, sort_order)",
]


def upgrade() -> None:
    for statement in TABLES + INDEXES:
        op.execute(sa.text(statement))


def downgrade() -> None:
    for table in (
        "assessment_questions",
        "assessments",
        "lesson_completion_rules",
        "course_lessons",
        "course_modules",
        "courses",
    ):
        op.execute(sa.text(f"DROP TABLE IF EXISTS {table}"))
