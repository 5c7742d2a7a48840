"""
assessment_attempt.py - Drives one learner through a single assessment attempt

State machine:
    LOADING -> IN_PROGRESS -> SUBMITTING -> RESULTS
    LOADING -> ERROR                         (terminal for this page view)
    IN_PROGRESS -> EXITED                    (save-and-exit)

Manual submission requires every question to be answered; the timer's
auto-submit goes through the same path without that gate. Submit and save
failures leave the attempt IN_PROGRESS with answers intact so the learner can
retry.
"""

import logging
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from futuretek.client.api import ApiRequestError, LmsClient
from futuretek.client.questions import (
    AnswerProgress,
    answer_progress,
    normalize_answer,
    questions_with_duplicate_options,
)
from futuretek.client.timer import AssessmentTimer
from futuretek.config import settings
from futuretek.models.assessment import (
    Assessment,
    AssessmentAttempt,
    AssessmentResults,
    AttemptStatus,
    Question,
)

logger = logging.getLogger(__name__)

COURSES_PATH = "/dashboard/user/courses"


class AttemptViewState(str, Enum):
    LOADING = "LOADING"
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTING = "SUBMITTING"
    RESULTS = "RESULTS"
    ERROR = "ERROR"
    EXITED = "EXITED"


class AttemptIncompleteError(Exception):
    """Manual submit was requested before every question was answered."""


def course_learn_path(course_id: Optional[str]) -> str:
    if not course_id:
        return COURSES_PATH
    return f"{COURSES_PATH}/{course_id}/learn"


class AssessmentAttemptController:
    def __init__(
        self,
        client: LmsClient,
        assessment_id: Optional[str],
        attempt_id: Optional[str],
        course_id: Optional[str] = None,
        navigate: Optional[Callable[[str], Any]] = None,
        timer_tick_seconds: float = 1.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.client = client
        self.assessment_id = assessment_id
        self.attempt_id = attempt_id
        self.course_id = course_id
        self._navigate = navigate or (lambda path: None)
        self._timer_tick_seconds = timer_tick_seconds
        self._clock = clock

        self.state = AttemptViewState.LOADING
        self.assessment: Optional[Assessment] = None
        self.attempt: Optional[AssessmentAttempt] = None
        self.answers: Dict[str, Any] = {}
        self.results: Optional[AssessmentResults] = None
        self.error: Optional[str] = None
        self.timer: Optional[AssessmentTimer] = None
        self.mounted = True

    # ── Loading ──────────────────────────────────────────────────────

    async def load(self) -> None:
        if not self.assessment_id or not self.attempt_id:
            self._fail_load("Invalid assessment attempt")
            return

        self.state = AttemptViewState.LOADING
        self.error = None
        try:
            assessment = await self.client.get_assessment(self.assessment_id)
            if not self.mounted:
                return
            attempt = await self.client.get_attempt(self.attempt_id)
        except ApiRequestError as e:
            logger.error(f"Failed to load attempt {self.attempt_id}: {e.message}")
            if self.mounted:
                self._fail_load(e.message or "Failed to load assessment")
            return

        # Results that arrive after the page closed are dropped
        if not self.mounted:
            return

        self.assessment = assessment
        self.attempt = attempt
        self.answers = dict(attempt.answers or {})

        duplicates = questions_with_duplicate_options(assessment.questions)
        for question_id, options in duplicates.items():
            logger.warning(f"Question {question_id} repeats option text {options}; answers bind by text")

        self.state = AttemptViewState.IN_PROGRESS
        if assessment.time_limit and attempt.status == AttemptStatus.IN_PROGRESS:
            self.timer = AssessmentTimer(
                assessment.time_limit, self.handle_time_up, tick_seconds=self._timer_tick_seconds
            )
            self.timer.start()

    def _fail_load(self, message: str) -> None:
        self.error = message
        self.state = AttemptViewState.ERROR

    # ── Answers ──────────────────────────────────────────────────────

    def _question(self, question_id: str) -> Question:
        for question in self.assessment.questions if self.assessment else []:
            if question.id == question_id:
                return question
        raise KeyError(question_id)

    def set_answer(self, question_id: str, raw: Any) -> None:
        if self.state != AttemptViewState.IN_PROGRESS:
            return
        self.answers[question_id] = normalize_answer(self._question(question_id), raw)

    def clear_answer(self, question_id: str) -> None:
        if self.state != AttemptViewState.IN_PROGRESS:
            return
        self.answers.pop(question_id, None)

    @property
    def progress(self) -> AnswerProgress:
        questions = self.assessment.questions if self.assessment else []
        return answer_progress(questions, self.answers)

    @property
    def can_submit(self) -> bool:
        progress = self.progress
        return (
            self.state == AttemptViewState.IN_PROGRESS
            and progress.total > 0
            and progress.answered == progress.total
        )

    # ── Submission ───────────────────────────────────────────────────

    async def submit(self) -> None:
        """Manual submit: only allowed once every question is answered."""
        if self.state in (AttemptViewState.SUBMITTING, AttemptViewState.RESULTS):
            return
        if not self.can_submit:
            raise AttemptIncompleteError("Answer every question before submitting")
        await self._submit()

    async def handle_time_up(self) -> None:
        """Auto-submit when the timer runs out, answered or not."""
        if self.state != AttemptViewState.IN_PROGRESS:
            return
        logger.info(f"Time limit reached, auto-submitting attempt {self.attempt_id}")
        await self._submit()

    async def _submit(self) -> None:
        if self.state in (AttemptViewState.SUBMITTING, AttemptViewState.RESULTS):
            return
        self.state = AttemptViewState.SUBMITTING
        self.error = None

        now = self._clock()
        started_at = self.attempt.started_at
        if started_at.tzinfo is None:
            started_at = started_at.replace(tzinfo=timezone.utc)
        time_spent = max(0, math.floor((now - started_at).total_seconds()))

        try:
            outcome = await self.client.submit_attempt(
                self.attempt_id, dict(self.answers), now.isoformat(), time_spent
            )
        except ApiRequestError as e:
            logger.error(f"Submit failed for attempt {self.attempt_id}: {e.message}")
            if self.mounted:
                self.error = f"Failed to submit assessment: {e.message}"
                self.state = AttemptViewState.IN_PROGRESS
            return

        if not self.mounted:
            return

        results = outcome.results
        if not results.passing_score:
            results.passing_score = (
                self.assessment.passing_score or settings.results_passing_score_fallback
            )
        if results.attempt_id is None:
            results.attempt_id = self.attempt_id

        self.results = results
        self.attempt = outcome.attempt
        if self.timer is not None:
            self.timer.stop()
        self.state = AttemptViewState.RESULTS

    # ── Exits ────────────────────────────────────────────────────────

    async def save_and_exit(self) -> bool:
        if self.state != AttemptViewState.IN_PROGRESS:
            return False
        try:
            await self.client.save_attempt(self.attempt_id, dict(self.answers))
        except ApiRequestError as e:
            logger.error(f"Save failed for attempt {self.attempt_id}: {e.message}")
            if self.mounted:
                self.error = "Failed to save progress"
            return False

        if self.timer is not None:
            self.timer.stop()
        self.state = AttemptViewState.EXITED
        self._navigate(course_learn_path(self.course_id))
        return True

    def continue_to_course(self) -> None:
        self._navigate(course_learn_path(self.course_id))

    def retake(self) -> None:
        # A new attempt is started from the course page
        self._navigate(course_learn_path(self.course_id))

    def back_to_courses(self) -> None:
        self._navigate(course_learn_path(self.course_id))

    def toggle_timer_pause(self) -> None:
        if self.timer is not None:
            self.timer.toggle_pause()

    def close(self) -> None:
        self.mounted = False
        if self.timer is not None:
            self.timer.stop()
