"""Tests for /api/progress and the server-side completion rules."""

import uuid


def _params(course, **extra):
    return {"userId": course["user_id"], "lessonId": course["lesson_id"], **extra}


async def _pass_quiz(api, headers, course):
    started = await api.post(
        "/api/assessment-attempts",
        json={
            "assessmentId": course["quiz_id"],
            "userId": course["user_id"],
            "enrollmentId": course["enrollment_id"],
        },
        headers=headers(course["user_id"]),
    )
    attempt_id = started.json()["data"]["attempt"]["id"]
    q1, q2, q3 = course["question_ids"]
    await api.post(
        "/api/assessment-attempts",
        params={"id": attempt_id, "submit": "true"},
        json={"answers": {q1: "Sun", q2: "Moon", q3: "true"}},
        headers=headers(course["user_id"]),
    )


class TestLessonProgress:
    async def test_default_when_no_row(self, api, headers, course):
        response = await api.get("/api/progress", params=_params(course), headers=headers(course["user_id"]))

        data = response.json()["data"]
        assert data["isCompleted"] is False
        assert data["lastWatchedPosition"] == 0
        assert data["videoPercentageWatched"] == 0
        assert data["enrollmentId"] == course["enrollment_id"]

    async def test_put_merges_only_sent_fields(self, api, headers, course):
        await api.put(
            "/api/progress",
            params=_params(course),
            json={"lastWatchedPosition": 120, "videoPercentageWatched": 20, "watchDuration": 120},
            headers=headers(course["user_id"]),
        )
        await api.put(
            "/api/progress",
            params=_params(course),
            json={"resourcesViewed": {"notes.pdf": True}},
            headers=headers(course["user_id"]),
        )

        response = await api.get("/api/progress", params=_params(course), headers=headers(course["user_id"]))
        data = response.json()["data"]
        assert data["lastWatchedPosition"] == 120
        assert data["videoPercentageWatched"] == 20
        assert data["resourcesViewed"] == {"notes.pdf": True}

    async def test_last_write_wins(self, api, headers, course):
        for position in (300, 90):
            await api.put(
                "/api/progress",
                params=_params(course),
                json={"lastWatchedPosition": position, "videoPercentageWatched": position // 6},
                headers=headers(course["user_id"]),
            )

        response = await api.get("/api/progress", params=_params(course), headers=headers(course["user_id"]))
        assert response.json()["data"]["lastWatchedPosition"] == 90

    async def test_not_enrolled_is_404(self, api, headers, course):
        stranger = str(uuid.uuid4())
        response = await api.get(
            "/api/progress",
            params={"userId": stranger, "lessonId": course["lesson_id"]},
            headers=headers(stranger),
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_ENROLLED"

    async def test_user_id_must_match_token(self, api, headers, course):
        response = await api.get("/api/progress", params=_params(course), headers=headers(str(uuid.uuid4())))

        assert response.status_code == 403

    async def test_user_id_required(self, api, headers, course):
        response = await api.get(
            "/api/progress", params={"lessonId": course["lesson_id"]}, headers=headers(course["user_id"])
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "userId is required"


class TestMarkComplete:
    async def test_quiz_required_blocks_completion(self, api, headers, course):
        response = await api.post(
            "/api/progress", params=_params(course, complete="true"), headers=headers(course["user_id"])
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "QUIZ_REQUIRED"

    async def test_complete_after_passing_quiz(self, api, headers, db, course):
        from futuretek.db import lms

        await _pass_quiz(api, headers, course)
        response = await api.post(
            "/api/progress", params=_params(course, complete="true"), headers=headers(course["user_id"])
        )

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["message"] == "Lesson marked as complete"
        assert body["data"]["isCompleted"] is True
        assert body["data"]["videoPercentageWatched"] == 100

        enrollment = await lms.get_enrollment(db, course["enrollment_id"])
        assert enrollment["progress"] == 100
        assert enrollment["completed_lessons"] == 1

    async def test_repeat_completion_keeps_first_timestamp(self, api, headers, course):
        await _pass_quiz(api, headers, course)
        first = await api.post(
            "/api/progress", params=_params(course, complete="true"), headers=headers(course["user_id"])
        )
        second = await api.post(
            "/api/progress", params=_params(course, complete="true"), headers=headers(course["user_id"])
        )

        assert first.json()["data"]["completedAt"] == second.json()["data"]["completedAt"]


class TestCourseProgress:
    async def test_course_progress_counts_rule_complete_lessons(self, api, headers, db, course):
        from futuretek.db import lms

        # A second lesson with no rules, marked complete directly
        extra = await lms.create_lesson(
            db, course["course_id"], course["module_id"], "Reading a chart", content_type="ARTICLE", sort_order=2
        )
        await api.post(
            "/api/progress",
            params={"userId": course["user_id"], "lessonId": extra, "complete": "true"},
            headers=headers(course["user_id"]),
        )
        # First lesson flagged complete but under-watched and quiz not passed
        await api.put(
            "/api/progress",
            params=_params(course),
            json={"isCompleted": True, "videoPercentageWatched": 50},
            headers=headers(course["user_id"]),
        )

        response = await api.get(
            "/api/progress",
            params={"userId": course["user_id"], "courseId": course["course_id"]},
            headers=headers(course["user_id"]),
        )

        data = response.json()["data"]
        assert data["overallProgress"] == 50
        assert data["completedLessons"] == 1
        assert data["totalLessons"] == 2
        by_id = {lesson["id"]: lesson for lesson in data["lessonsProgress"]}
        assert by_id[extra]["isComplete"] is True
        assert by_id[course["lesson_id"]]["isComplete"] is False
        assert by_id[course["lesson_id"]]["completionRules"]["minVideoWatchPercentage"] == 90
        assert by_id[course["lesson_id"]]["quizResult"] == {
            "quizRequired": True,
            "quizPassed": False,
            "assessmentId": course["quiz_id"],
        }
        assert data["finalAssessmentStatus"] is None
        assert data["moduleAssessmentStatus"][0]["passed"] is True

    async def test_put_course_progress(self, api, headers, course):
        response = await api.put(
            "/api/progress",
            params={"userId": course["user_id"], "courseId": course["course_id"]},
            json={"progress": 40},
            headers=headers(course["user_id"]),
        )

        data = response.json()["data"]
        assert data["progress"] == 40
        assert data["lastAccessedAt"] is not None

    async def test_overview(self, api, headers, course):
        response = await api.get(
            "/api/progress",
            params={"userId": course["user_id"], "overview": "true"},
            headers=headers(course["user_id"]),
        )

        data = response.json()["data"]
        assert data["totalCourses"] == 1
        assert data["completedLessons"] == 0
        assert data["enrollments"][0]["courseId"] == course["course_id"]


class TestCompletionRules:
    """is_lesson_complete is a pure function of rules, progress and quiz outcome."""

    def test_requires_marked_complete(self):
        from futuretek.services.completion import is_lesson_complete

        assert is_lesson_complete(None, {"is_completed": False}, True) is False
        assert is_lesson_complete(None, None, True) is False
        assert is_lesson_complete(None, {"is_completed": True}, False) is True

    def test_video_threshold(self):
        from futuretek.services.completion import is_lesson_complete

        rules = {"require_video_watched": True, "min_video_watch_percentage": 90}
        assert is_lesson_complete(rules, {"is_completed": True, "video_percentage_watched": 89}, True) is False
        assert is_lesson_complete(rules, {"is_completed": True, "video_percentage_watched": 90}, True) is True

    def test_resources_must_be_non_empty_object(self):
        from futuretek.services.completion import is_lesson_complete

        rules = {"require_resources_viewed": True}
        assert is_lesson_complete(rules, {"is_completed": True, "resources_viewed": {}}, True) is False
        assert is_lesson_complete(rules, {"is_completed": True, "resources_viewed": {"a": 1}}, True) is True

    def test_quiz_requirement(self):
        from futuretek.services.completion import is_lesson_complete

        rules = {"require_quiz_passed": True}
        assert is_lesson_complete(rules, {"is_completed": True}, False) is False
        assert is_lesson_complete(rules, {"is_completed": True}, True) is True
