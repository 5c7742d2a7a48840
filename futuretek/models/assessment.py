from datetime import datetime
from enum import Enum
from typing import Any, Optional

from futuretek.models.base import ApiModel


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"
    ESSAY = "ESSAY"


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class AssessmentLevel(str, Enum):
    LESSON_QUIZ = "LESSON_QUIZ"
    MODULE_ASSESSMENT = "MODULE_ASSESSMENT"
    COURSE_FINAL = "COURSE_FINAL"


class AttemptStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


class Question(ApiModel):
    id: str
    question_text: str
    question_type: QuestionType
    options: Optional[list[str]] = None
    points: int = 1
    negative_points: int = 0
    difficulty: Difficulty = Difficulty.MEDIUM
    sort_order: int = 0
    # Only present for admin/faculty readers
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None


class Assessment(ApiModel):
    id: str
    title: str
    description: Optional[str] = None
    questions: list[Question] = []
    passing_score: Optional[int] = None
    # Minutes; None means untimed
    time_limit: Optional[int] = None
    assessment_level: AssessmentLevel = AssessmentLevel.LESSON_QUIZ
    course_id: Optional[str] = None
    module_id: Optional[str] = None
    lesson_id: Optional[str] = None
    max_attempts: Optional[int] = None
    allow_retake: bool = True
    show_correct_answers: bool = False
    randomize_questions: bool = False
    is_required: bool = False
    available_from: Optional[datetime] = None
    available_until: Optional[datetime] = None
    course_title: Optional[str] = None
    module_title: Optional[str] = None
    lesson_title: Optional[str] = None


class AssessmentAttempt(ApiModel):
    id: str
    assessment_id: Optional[str] = None
    user_id: Optional[str] = None
    enrollment_id: Optional[str] = None
    attempt_number: int = 1
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    score: int = 0
    total_points: int = 0
    percentage: int = 0
    passed: bool = False
    started_at: datetime
    completed_at: Optional[datetime] = None
    time_spent: int = 0
    answers: dict[str, Any] = {}


class QuestionResult(ApiModel):
    question_id: str
    question_text: str
    question_type: QuestionType
    difficulty: Difficulty = Difficulty.MEDIUM
    correct_answer: Optional[str] = None
    user_answer: Any = None
    is_correct: bool = False
    points: int = 0
    max_points: int = 1
    negative_points: int = 0
    explanation: Optional[str] = None


class AssessmentResults(ApiModel):
    score: int
    total_points: int
    percentage: int
    passed: bool
    passing_score: int
    correct_answers: int
    total_questions: int
    attempt_id: Optional[str] = None
    detailed_results: list[QuestionResult] = []


# ── Request bodies ───────────────────────────────────────────────────

class StartAttemptRequest(ApiModel):
    assessment_id: Optional[str] = None
    user_id: Optional[str] = None
    enrollment_id: Optional[str] = None


class SubmitAttemptRequest(ApiModel):
    # Validated by hand so a non-object gets the "Invalid answers" error
    answers: Any = None
    status: Optional[str] = None
    completed_at: Optional[str] = None
    time_spent: Optional[int] = None


class SaveAttemptRequest(ApiModel):
    answers: Any = None
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
