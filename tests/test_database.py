"""Tests for the database layer: placeholder conversion, row decoding and guarded updates."""

import pytest


class TestConvertPlaceholders:
    def test_numbers_placeholders_in_order(self):
        from futuretek.db.database import convert_placeholders

        sql = "SELECT * FROM lesson_progress WHERE user_id = ? AND lesson_id = ?"
        assert convert_placeholders(sql) == (
            "SELECT * FROM lesson_progress WHERE user_id = $1 AND lesson_id = $2"
        )

    def test_leaves_question_marks_inside_literals(self):
        from futuretek.db.database import convert_placeholders

        sql = "SELECT * FROM assessment_questions WHERE question_text = 'Why?' AND id = ?"
        assert convert_placeholders(sql).endswith("'Why?' AND id = $1")


class TestLmsHelpers:
    async def test_flags_and_json_are_decoded(self, db, course):
        from futuretek.db import lms

        questions = await lms.list_questions(db, course["quiz_id"])

        assert questions[0]["options"] == ["Sun", "Moon", "Mars"]
        assert questions[0]["is_active"] is True

    async def test_inactive_questions_are_hidden(self, db, course):
        from futuretek.db import lms

        await db.execute(
            "UPDATE assessment_questions SET is_active = 0 WHERE id = ?", (course["question_ids"][2],)
        )
        await db.commit()

        assert len(await lms.list_questions(db, course["quiz_id"])) == 2
        assert len(await lms.list_questions(db, course["quiz_id"], active_only=False)) == 3

    async def test_update_rejects_unknown_columns(self, db, course):
        from futuretek.db import lms

        with pytest.raises(ValueError):
            await lms.update_enrollment(db, course["enrollment_id"], user_id="someone-else")

    async def test_upsert_creates_then_merges(self, db, course):
        from futuretek.db import lms

        created = await lms.upsert_lesson_progress(
            db, course["user_id"], course["lesson_id"], course["enrollment_id"], {"last_watched_position": 30}
        )
        merged = await lms.upsert_lesson_progress(
            db, course["user_id"], course["lesson_id"], course["enrollment_id"], {"quiz_attempted": True}
        )

        assert created["id"] == merged["id"]
        assert merged["last_watched_position"] == 30
        assert merged["quiz_attempted"] is True


class TestBackendSelection:
    def test_sqlite_url_from_path(self, monkeypatch):
        from futuretek.config import settings

        monkeypatch.setattr(settings, "database_url", "")
        monkeypatch.setattr(settings, "database_path", "/data/lms.db")

        assert settings.use_postgres is False
        assert settings.sqlalchemy_url == "sqlite:////data/lms.db"

    def test_postgres_url_wins(self, monkeypatch):
        from futuretek.config import settings

        monkeypatch.setattr(settings, "database_url", "postgresql://lms:pw@db:5432/futuretek")

        assert settings.use_postgres is True
        assert settings.sqlalchemy_url == "postgresql://lms:pw@db:5432/futuretek"

    async def test_migrations_create_lms_tables(self, db):
        cursor = await db.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        tables = {row["name"] for row in await cursor.fetchall()}

        assert {"assessments", "assessment_attempts", "lesson_progress", "enrollments"} <= tables
