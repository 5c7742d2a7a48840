"""
api.py - Async REST client for the learner player

Wraps the assessment, attempt and progress endpoints and unwraps the
``{success, data, error}`` envelope. Every failure (transport error, non-2xx
status, non-JSON body, ``success: false`` or missing ``data``) surfaces as
ApiRequestError. Requests have no timeout and are never retried.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from futuretek.config import settings
from futuretek.models.assessment import Assessment, AssessmentAttempt, AssessmentResults, AttemptStatus
from futuretek.models.lesson import LessonProgress

logger = logging.getLogger(__name__)


class ApiRequestError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


@dataclass
class SubmissionOutcome:
    results: AssessmentResults
    attempt: AssessmentAttempt


class LmsClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        token = token if token is not None else settings.api_token
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            headers=headers,
            timeout=None,
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        params: Dict[str, str],
        json: Any = None,
        require_data: bool = True,
    ) -> Any:
        try:
            response = await self._http.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            raise ApiRequestError(f"Network error: {e}") from e

        try:
            body = response.json()
        except ValueError:
            raise ApiRequestError(
                f"Malformed response ({response.status_code})", status_code=response.status_code
            )

        error = body.get("error") if isinstance(body, dict) else None
        if response.is_error or not isinstance(body, dict) or not body.get("success"):
            message = (error or {}).get("message") or f"Request failed with status {response.status_code}"
            raise ApiRequestError(message, status_code=response.status_code, code=(error or {}).get("code"))

        if require_data and body.get("data") is None:
            raise ApiRequestError("Response contained no data", status_code=response.status_code)
        return body.get("data")

    # ── Assessments ──────────────────────────────────────────────────

    async def get_assessment(self, assessment_id: str) -> Assessment:
        data = await self._request("GET", "/api/assessments", {"id": assessment_id})
        return Assessment.model_validate(data)

    async def get_attempt(self, attempt_id: str) -> AssessmentAttempt:
        data = await self._request("GET", "/api/assessment-attempts", {"id": attempt_id})
        return AssessmentAttempt.model_validate(data)

    async def submit_attempt(
        self, attempt_id: str, answers: Dict[str, Any], completed_at: str, time_spent: int
    ) -> SubmissionOutcome:
        data = await self._request(
            "POST",
            "/api/assessment-attempts",
            {"id": attempt_id, "submit": "true"},
            json={
                "answers": answers,
                "status": AttemptStatus.COMPLETED.value,
                "completedAt": completed_at,
                "timeSpent": time_spent,
            },
        )
        if not isinstance(data, dict) or "results" not in data or "attempt" not in data:
            raise ApiRequestError("Submission response is missing results")
        return SubmissionOutcome(
            results=AssessmentResults.model_validate(data["results"]),
            attempt=AssessmentAttempt.model_validate(data["attempt"]),
        )

    async def save_attempt(self, attempt_id: str, answers: Dict[str, Any]) -> None:
        await self._request(
            "PUT",
            "/api/assessment-attempts",
            {"id": attempt_id},
            json={"answers": answers, "status": AttemptStatus.IN_PROGRESS.value},
            require_data=False,
        )

    # ── Lesson progress ──────────────────────────────────────────────

    async def get_lesson_progress(self, user_id: str, lesson_id: str) -> LessonProgress:
        data = await self._request("GET", "/api/progress", {"userId": user_id, "lessonId": lesson_id})
        return LessonProgress.model_validate(data)

    async def update_lesson_progress(
        self, user_id: str, lesson_id: str, position: int, percentage: int
    ) -> None:
        await self._request(
            "PUT",
            "/api/progress",
            {"userId": user_id, "lessonId": lesson_id},
            json={
                "lastWatchedPosition": position,
                "videoPercentageWatched": percentage,
                "watchDuration": position,
            },
            require_data=False,
        )

    async def mark_lesson_complete(self, user_id: str, lesson_id: str) -> LessonProgress:
        data = await self._request(
            "POST",
            "/api/progress",
            {"userId": user_id, "lessonId": lesson_id, "complete": "true"},
        )
        return LessonProgress.model_validate(data)
