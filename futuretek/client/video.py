"""Classify lesson video URLs into natively playable files and iframe embeds.

Only direct files report playback position, so only they can drive
watch-percentage tracking.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class VideoKind(str, Enum):
    YOUTUBE = "YOUTUBE"
    VIMEO = "VIMEO"
    DIRECT = "DIRECT"
    EMBED = "EMBED"


@dataclass(frozen=True)
class VideoSource:
    kind: VideoKind
    embed_url: str
    label: str

    @property
    def has_playback_telemetry(self) -> bool:
        return self.kind == VideoKind.DIRECT


DIRECT_EXTENSIONS = (".mp4", ".webm", ".ogg")
CLOUD_STORAGE_HOSTS = ("amazonaws.com", "storage.googleapis.com", "blob.core.windows.net")

_YOUTUBE_ID_RE = re.compile(
    r"(?:youtube\.com/(?:watch\?(?:.*&)?v=|embed/|v/|shorts/)|youtu\.be/)([A-Za-z0-9_-]{6,})"
)
_VIMEO_ID_RE = re.compile(r"vimeo\.com/(?:video/)?(\d+)")


def normalize_video_url(url: str) -> str:
    url = url.strip()
    if url and not re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", url):
        url = f"https://{url}"
    return url


def _with_autoplay_off(url: str) -> str:
    return f"{url}{'&' if '?' in url else '?'}autoplay=0"


def _youtube_embed(url: str) -> str:
    if "/embed/" in url:
        return _with_autoplay_off(url)
    match = _YOUTUBE_ID_RE.search(url)
    if not match:
        return url
    return f"https://www.youtube.com/embed/{match.group(1)}?autoplay=0&rel=0&modestbranding=1"


def _vimeo_embed(url: str) -> str:
    match = _VIMEO_ID_RE.search(url)
    if not match:
        return url
    return f"https://player.vimeo.com/video/{match.group(1)}?autoplay=0&title=0&byline=0&portrait=0"


def is_direct_video(url: str) -> bool:
    lowered = url.lower()
    return (
        lowered.endswith(DIRECT_EXTENSIONS)
        or ".mp4?" in lowered
        or ".webm?" in lowered
        or any(host in lowered for host in CLOUD_STORAGE_HOSTS)
    )


def _direct_label(url: str) -> str:
    if "amazonaws.com" in url.lower():
        return "AWS S3"
    return "MP4 Video"


def classify_video(url: Optional[str]) -> VideoSource:
    url = normalize_video_url(url or "")
    lowered = url.lower()

    if "youtube.com" in lowered or "youtu.be" in lowered:
        return VideoSource(VideoKind.YOUTUBE, _youtube_embed(url), "YouTube")
    if "vimeo.com" in lowered:
        return VideoSource(VideoKind.VIMEO, _vimeo_embed(url), "Vimeo")
    if is_direct_video(url):
        return VideoSource(VideoKind.DIRECT, url, _direct_label(url))
    if "/embed/" in lowered:
        url = _with_autoplay_off(url)
    return VideoSource(VideoKind.EMBED, url, "Video Content")
