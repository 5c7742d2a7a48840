"""
lesson_progress.py - Video progress sync and completion gating for one lesson

For direct video files every playback tick updates the local watch
percentage and re-arms a debounced PUT; at most one write goes out per
quiet period, and close() flushes the last position. Iframe embeds
(YouTube, Vimeo, others) report no playback position, so their watch
requirement is waived in the completion gate.

Progress writes are fire-and-forget and last-write-wins: a slow write may
land after a newer one, and no sequencing is attempted.
"""

import inspect
import logging
import math
from typing import Any, Awaitable, Callable, Optional, Union

from futuretek.client.api import ApiRequestError, LmsClient
from futuretek.client.debounce import Debouncer
from futuretek.client.video import VideoSource, classify_video
from futuretek.config import settings
from futuretek.models.assessment import Assessment
from futuretek.models.base import round_half_up
from futuretek.models.lesson import CompletionRules, ContentType, Lesson, LessonProgress

logger = logging.getLogger(__name__)

Callback = Callable[..., Union[None, Awaitable[None]]]


async def _call(callback: Optional[Callback], *args) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class LessonProgressTracker:
    def __init__(
        self,
        lesson: Lesson,
        user_id: str,
        client: LmsClient,
        progress: Optional[LessonProgress] = None,
        on_refresh: Optional[Callback] = None,
        on_route_refresh: Optional[Callback] = None,
        on_alert: Optional[Callable[[str], Any]] = None,
        on_start_assessment: Optional[Callable[[Assessment], Any]] = None,
        debounce_seconds: Optional[float] = None,
    ):
        self.lesson = lesson
        self.user_id = user_id
        self.client = client
        self.on_refresh = on_refresh
        self.on_route_refresh = on_route_refresh
        self.on_alert = on_alert
        self.on_start_assessment = on_start_assessment

        self.video: Optional[VideoSource] = (
            classify_video(lesson.video_url)
            if lesson.content_type == ContentType.VIDEO and lesson.video_url
            else None
        )
        self.rules = lesson.completion_rules or CompletionRules()

        self.progress: Optional[LessonProgress] = None
        self.position = 0.0
        self.watch_percentage = 0.0
        self.is_completed = False
        self.completing = False
        self.error: Optional[str] = None
        self.mounted = True
        self._seeked = False

        if debounce_seconds is None:
            debounce_seconds = settings.progress_debounce_seconds
        self._writer = Debouncer(debounce_seconds, self._write_progress)

        if progress is not None:
            self._apply_progress(progress)

    def _apply_progress(self, progress: LessonProgress) -> None:
        self.progress = progress
        self.position = float(progress.last_watched_position or 0)
        self.watch_percentage = float(progress.overall_progress or 0)
        self.is_completed = progress.is_completed

    @property
    def tracks_playback(self) -> bool:
        return self.video is not None and self.video.has_playback_telemetry

    async def load_progress(self) -> Optional[LessonProgress]:
        try:
            progress = await self.client.get_lesson_progress(self.user_id, self.lesson.id)
        except ApiRequestError as e:
            logger.error(f"Failed to load progress for lesson {self.lesson.id}: {e.message}")
            if self.mounted:
                self.error = e.message
            return None
        if not self.mounted:
            return None
        self._apply_progress(progress)
        return progress

    # ── Playback ─────────────────────────────────────────────────────

    def on_loaded_metadata(self, duration: Optional[float] = None) -> Optional[float]:
        """Offset to seek to once the player can seek; only the first call returns one."""
        if self._seeked or not self.tracks_playback:
            return None
        self._seeked = True
        last = self.progress.last_watched_position if self.progress else 0
        return float(last) if last and last > 0 else None

    def on_time_update(self, position: float, duration: float) -> None:
        if not self.tracks_playback or not duration or duration <= 0:
            return
        percentage = min(100.0, max(0.0, position / duration * 100))
        self.position = position
        self.watch_percentage = percentage
        self._writer.push(position, percentage)

    async def _write_progress(self, position: float, percentage: float) -> None:
        try:
            await self.client.update_lesson_progress(
                self.user_id,
                self.lesson.id,
                math.floor(position),
                round_half_up(percentage),
            )
        except ApiRequestError as e:
            logger.warning(f"Progress write failed for lesson {self.lesson.id}: {e.message}")

    # ── Completion ───────────────────────────────────────────────────

    @property
    def can_mark_complete(self) -> bool:
        if self.is_completed or self.completing:
            return False

        content_type = self.lesson.content_type
        if content_type == ContentType.VIDEO:
            if not self.rules.require_video_watched:
                return True
            if not self.tracks_playback:
                # No position is observable inside an iframe embed
                return True
            return self.watch_percentage >= self.rules.min_video_watch_percentage
        if content_type == ContentType.ARTICLE:
            # TODO: enforce require_resources_viewed once resource views are tracked client-side
            return True
        if content_type == ContentType.QUIZ:
            # TODO: check require_quiz_passed against the lesson quiz's latest attempt
            return True
        return True

    async def mark_complete(self) -> bool:
        if not self.can_mark_complete:
            return False

        self.completing = True
        try:
            progress = await self.client.mark_lesson_complete(self.user_id, self.lesson.id)
        except ApiRequestError as e:
            logger.error(f"Mark complete failed for lesson {self.lesson.id}: {e.message}")
            if self.mounted:
                await _call(self.on_alert, e.message or "Failed to mark lesson as complete")
            return False
        finally:
            self.completing = False

        if not self.mounted:
            return True
        self._apply_progress(progress)
        self.is_completed = True
        await _call(self.on_refresh)
        await _call(self.on_route_refresh)
        return True

    def start_quiz(self) -> bool:
        if self.lesson.quiz is None or self.on_start_assessment is None:
            return False
        self.on_start_assessment(self.lesson.quiz)
        return True

    async def close(self) -> None:
        """Send the last pending position, then wait for writes already in flight."""
        self.mounted = False
        await self._writer.flush()
        await self._writer.drain()
