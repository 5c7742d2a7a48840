from datetime import datetime
from enum import Enum
from typing import Any, Optional

from futuretek.models.assessment import Assessment
from futuretek.models.base import ApiModel


class ContentType(str, Enum):
    VIDEO = "VIDEO"
    ARTICLE = "ARTICLE"
    QUIZ = "QUIZ"


class CompletionRules(ApiModel):
    """What a learner must do before a lesson counts as finished.

    A lesson without a rules row behaves like ``CompletionRules()``: nothing is
    required beyond pressing "mark complete".
    """

    require_video_watched: bool = False
    min_video_watch_percentage: int = 90
    require_resources_viewed: bool = False
    require_quiz_passed: bool = False


class Lesson(ApiModel):
    id: str
    title: str
    description: Optional[str] = None
    content_type: ContentType = ContentType.VIDEO
    video_url: Optional[str] = None
    # Seconds
    video_duration: Optional[int] = None
    article_content: Optional[str] = None
    quiz: Optional[Assessment] = None
    completion_rules: Optional[CompletionRules] = None
    course_id: Optional[str] = None
    module_id: Optional[str] = None
    sort_order: int = 0
    has_quiz: bool = False
    quiz_required: bool = False


class LessonProgress(ApiModel):
    lesson_id: Optional[str] = None
    user_id: Optional[str] = None
    enrollment_id: Optional[str] = None
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    # Seconds
    last_watched_position: int = 0
    watch_duration: int = 0
    video_percentage_watched: int = 0
    resources_viewed: Optional[dict[str, Any]] = None
    quiz_attempted: bool = False
    quiz_passed: bool = False

    @property
    def overall_progress(self) -> int:
        return self.video_percentage_watched


class LessonProgressUpdate(ApiModel):
    last_watched_position: Optional[int] = None
    watch_duration: Optional[int] = None
    video_percentage_watched: Optional[int] = None
    is_completed: Optional[bool] = None
    resources_viewed: Optional[dict[str, Any]] = None
    quiz_attempted: Optional[bool] = None
    quiz_passed: Optional[bool] = None


class CourseProgressUpdate(ApiModel):
    progress: Optional[int] = None
