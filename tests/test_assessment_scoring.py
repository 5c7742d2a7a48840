"""Tests for server-side assessment scoring, availability and attempt limits."""

from datetime import datetime, timedelta, timezone

import pytest


def _question(qid, qtype, correct, points=1, negative=0, options=None):
    return {
        "id": qid,
        "question_text": f"Question {qid}",
        "question_type": qtype,
        "correct_answer": correct,
        "options": options,
        "points": points,
        "negative_points": negative,
        "difficulty": "MEDIUM",
    }


class TestScoreAnswers:
    """Scoring rules per question type."""

    def test_all_correct_multiple_choice(self):
        from futuretek.services.assessment_scorer import score_answers

        questions = [
            _question("q1", "MULTIPLE_CHOICE", "Sun", options=["Sun", "Moon"]),
            _question("q2", "MULTIPLE_CHOICE", "Moon", options=["Sun", "Moon"]),
        ]
        results = score_answers(questions, {"q1": "Sun", "q2": "Moon"}, passing_score=70)

        assert results.score == 2
        assert results.total_points == 2
        assert results.percentage == 100
        assert results.passed is True
        assert results.passing_score == 70
        assert results.correct_answers == 2
        assert results.total_questions == 2

    def test_wrong_choice_costs_negative_points(self):
        from futuretek.services.assessment_scorer import score_answers

        questions = [
            _question("q1", "MULTIPLE_CHOICE", "Sun", points=2, negative=1),
            _question("q2", "MULTIPLE_CHOICE", "Moon", points=2, negative=1),
        ]
        results = score_answers(questions, {"q1": "Sun", "q2": "Mars"})

        assert results.score == 1
        assert results.total_points == 4
        assert results.percentage == 25
        assert results.detailed_results[1].points == -1

    def test_unanswered_choice_is_not_penalised(self):
        from futuretek.services.assessment_scorer import score_answers

        questions = [_question("q1", "MULTIPLE_CHOICE", "Sun", negative=1)]
        results = score_answers(questions, {})

        assert results.score == 0
        assert results.percentage == 0

    def test_true_false_ignores_case(self):
        from futuretek.services.assessment_scorer import score_answers

        questions = [_question("q1", "TRUE_FALSE", "True")]
        results = score_answers(questions, {"q1": "true"})

        assert results.correct_answers == 1

    def test_short_answer_trimmed_and_no_penalty(self):
        from futuretek.services.assessment_scorer import score_answers

        questions = [
            _question("q1", "SHORT_ANSWER", "Jupiter", negative=3),
            _question("q2", "SHORT_ANSWER", "Saturn", negative=3),
        ]
        results = score_answers(questions, {"q1": "  jupiter ", "q2": "Mercury"})

        assert results.score == 1
        assert results.detailed_results[1].points == 0

    def test_essay_is_never_auto_graded(self):
        from futuretek.services.assessment_scorer import score_answers

        questions = [
            _question("q1", "ESSAY", "anything", points=5),
            _question("q2", "MULTIPLE_CHOICE", "Sun", points=5),
        ]
        results = score_answers(questions, {"q1": "anything", "q2": "Sun"})

        assert results.score == 5
        assert results.total_points == 10
        assert results.percentage == 50
        assert results.detailed_results[0].is_correct is False

    def test_default_passing_score_is_sixty(self):
        from futuretek.services.assessment_scorer import score_answers

        questions = [_question(f"q{i}", "MULTIPLE_CHOICE", "A") for i in range(5)]
        answers = {"q0": "A", "q1": "A", "q2": "A", "q3": "B", "q4": "B"}
        results = score_answers(questions, answers)

        assert results.passing_score == 60
        assert results.percentage == 60
        assert results.passed is True

    def test_no_questions_scores_zero(self):
        from futuretek.services.assessment_scorer import score_answers

        results = score_answers([], {"q1": "A"})

        assert results.percentage == 0
        assert results.passed is False

    def test_round_half_up(self):
        from decimal import Decimal

        from futuretek.models.base import round_half_up

        assert round_half_up(66.5) == 67
        assert round_half_up(2.5) == 3
        assert round_half_up(33.3) == 33
        assert round_half_up(-2.5) == -2
        assert round_half_up(-2.6) == -3
        assert round_half_up(Decimal("75.5")) == 76

    def test_negative_score_rounds_toward_zero_at_half(self):
        from futuretek.services.assessment_scorer import score_answers

        questions = [_question("q1", "MULTIPLE_CHOICE", "Sun", points=40, negative=1)]
        results = score_answers(questions, {"q1": "Mars"})

        # -1 / 40 = -2.5%
        assert results.score == -1
        assert results.percentage == -2
        assert results.passed is False


class TestAvailability:
    def test_open_window(self):
        from futuretek.services.assessment_scorer import check_availability

        assert check_availability({})["available"] is True

    def test_not_yet_open(self):
        from futuretek.services.assessment_scorer import check_availability

        tomorrow = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
        result = check_availability({"available_from": tomorrow})

        assert result["available"] is False
        assert result["reason"] == "Assessment not available yet"

    def test_deadline_passed(self):
        from futuretek.services.assessment_scorer import check_availability

        yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        result = check_availability({"available_until": yesterday})

        assert result["available"] is False
        assert result["reason"] == "Assessment deadline has passed"


class TestAttemptLimits:
    """Attempt limits read previous attempts from the database."""

    async def test_first_attempt_allowed(self, db, course):
        from futuretek.db import lms
        from futuretek.services.assessment_scorer import check_attempt_limits

        assessment = await lms.get_assessment(db, course["quiz_id"])
        result = await check_attempt_limits(db, assessment, course["user_id"], course["enrollment_id"])

        assert result["allowed"] is True
        assert result["current_attempt"] == 1

    async def test_max_attempts_exceeded(self, db, course):
        from futuretek.db import lms
        from futuretek.services.assessment_scorer import check_attempt_limits

        await db.execute("UPDATE assessments SET max_attempts = 1 WHERE id = ?", (course["quiz_id"],))
        await db.commit()
        await lms.create_attempt(db, course["quiz_id"], course["user_id"], course["enrollment_id"], 1, 3)

        assessment = await lms.get_assessment(db, course["quiz_id"])
        result = await check_attempt_limits(db, assessment, course["user_id"], course["enrollment_id"])

        assert result["allowed"] is False
        assert result["reason"] == "Maximum attempts (1) exceeded"

    async def test_no_retake_after_pass(self, db, course):
        from futuretek.db import lms
        from futuretek.services.assessment_scorer import check_attempt_limits

        await db.execute("UPDATE assessments SET allow_retake = 0 WHERE id = ?", (course["quiz_id"],))
        await db.commit()
        attempt = await lms.create_attempt(db, course["quiz_id"], course["user_id"], course["enrollment_id"], 1, 3)
        await lms.update_attempt(db, attempt["id"], status="COMPLETED", passed=True, percentage=100)

        assessment = await lms.get_assessment(db, course["quiz_id"])
        result = await check_attempt_limits(db, assessment, course["user_id"], course["enrollment_id"])

        assert result["allowed"] is False
        assert "retake not allowed" in result["reason"]


class _DecimalAverageCursor:
    async def fetchone(self):
        from decimal import Decimal

        return {"avg_pct": Decimal("75.5")}


class _DecimalAverageDb:
    """Answers AVG() the way asyncpg does, with a Decimal."""

    async def execute(self, sql, params=None):
        return _DecimalAverageCursor()


class TestEnrollmentStatistics:
    async def test_average_percentage_is_float(self):
        from futuretek.db import lms

        avg = await lms.average_completed_percentage(_DecimalAverageDb(), "enrollment-1", "LESSON_QUIZ")

        assert avg == 75.5
        assert isinstance(avg, float)

    @pytest.mark.parametrize("level", ["LESSON_QUIZ", "MODULE_ASSESSMENT"])
    async def test_decimal_average_is_written(self, db, course, monkeypatch, level):
        from decimal import Decimal

        from futuretek.db import lms
        from futuretek.services.assessment_scorer import update_enrollment_statistics

        async def decimal_average(db, enrollment_id, level):
            return Decimal("75.5")

        monkeypatch.setattr(lms, "average_completed_percentage", decimal_average)

        await update_enrollment_statistics(
            db, {"id": course["quiz_id"], "assessment_level": level}, course["enrollment_id"], 80
        )

        enrollment = await lms.get_enrollment(db, course["enrollment_id"])
        assert enrollment["average_quiz_score"] == 76
        if level == "MODULE_ASSESSMENT":
            assert enrollment["overall_score"] == 76

    async def test_final_sets_overall_score(self, db, course):
        from futuretek.db import lms
        from futuretek.services.assessment_scorer import update_enrollment_statistics

        await update_enrollment_statistics(
            db, {"id": course["quiz_id"], "assessment_level": "COURSE_FINAL"}, course["enrollment_id"], 88
        )

        enrollment = await lms.get_enrollment(db, course["enrollment_id"])
        assert enrollment["final_assessment_score"] == 88
        assert enrollment["overall_score"] == 88
