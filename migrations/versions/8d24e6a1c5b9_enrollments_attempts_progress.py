"""enrollments_attempts_progress

Learner-owned state: enrollments with their denormalized statistics,
assessment attempts, and per user x lesson progress.

Revision ID: 8d24e6a1c5b9
Revises: 3b1f9c2d7a40
Create Date: 2026-09-28

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "8d24e6a1c5b9"
down_revision: Union[str, Sequence[str], None] = "3b1f9c2d7a40"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute(sa.text("""
        CREATE TABLE IF NOT EXISTS enrollments (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            status TEXT NOT NULL DEFAULT 'ACTIVE',
            progress INTEGER NOT NULL DEFAULT 0,
            completed_lessons INTEGER NOT NULL DEFAULT 0,
            total_lessons INTEGER NOT NULL DEFAULT 0,
            completed_assessments INTEGER NOT NULL DEFAULT 0,
            total_assessments INTEGER NOT NULL DEFAULT 0,
            average_quiz_score INTEGER,
            final_assessment_score INTEGER,
            overall_score INTEGER,
            certificate_eligible INTEGER NOT NULL DEFAULT 0,
            last_accessed_at TEXT,
            completed_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """))
    op.execute(sa.text("""
        CREATE TABLE IF NOT EXISTS assessment_attempts (
            id TEXT PRIMARY KEY,
            assessment_id TEXT NOT NULL REFERENCES assessments(id) ON DELETE CASCADE,
            user_id TEXT NOT NULL,
            enrollment_id TEXT NOT NULL REFERENCES enrollments(id) ON DELETE CASCADE,
            attempt_number INTEGER NOT NULL DEFAULT 1,
            status TEXT NOT NULL DEFAULT 'IN_PROGRESS',
            score INTEGER NOT NULL DEFAULT 0,
            total_points INTEGER NOT NULL DEFAULT 0,
            percentage INTEGER NOT NULL DEFAULT 0,
            passed INTEGER NOT NULL DEFAULT 0,
            started_at TEXT NOT NULL,
            completed_at TEXT,
            time_spent INTEGER NOT NULL DEFAULT 0,
            answers TEXT NOT NULL DEFAULT '{}',
            updated_at TEXT NOT NULL
        )
    """))
    op.execute(sa.text("""
        CREATE TABLE IF NOT EXISTS lesson_progress (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            lesson_id TEXT NOT NULL REFERENCES course_lessons(id) ON DELETE CASCADE,
            enrollment_id TEXT NOT NULL REFERENCES enrollments(id) ON DELETE CASCADE,
            is_completed INTEGER NOT NULL DEFAULT 0,
            completed_at TEXT,
            last_watched_position INTEGER NOT NULL DEFAULT 0,
            watch_duration INTEGER NOT NULL DEFAULT 0,
            video_percentage_watched INTEGER NOT NULL DEFAULT 0,
            resources_viewed TEXT,
            quiz_attempted INTEGER NOT NULL DEFAULT 0,
            quiz_passed INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE (user_id, lesson_id)
        )
    """))
    op.execute(sa.text(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_enrollments_user_course "
        "ON enrollments(user_id, course_id)"
    ))
    op.execute(sa.text(
        "CREATE INDEX IF NOT EXISTS idx_attempts_user_assessment "
        "ON assessment_attempts(user_id, assessment_id, enrollment_id)"
    ))
    op.execute(sa.text(
        "CREATE INDEX IF NOT EXISTS idx_lesson_progress_enrollment "
        "ON lesson_progress(enrollment_id)"
    ))


def downgrade() -> None:
    op.execute(sa.text("DROP TABLE IF EXISTS lesson_progress"))
    op.execute(sa.text("DROP TABLE IF EXISTS assessment_attempts"))
    op.execute(sa.text("DROP TABLE IF EXISTS enrollments"))
