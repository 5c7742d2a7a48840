"""Tests for lesson video URL classification."""

import pytest


class TestClassifyVideo:
    @pytest.mark.parametrize("url", [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://youtu.be/dQw4w9WgXcQ?t=42",
        "youtube.com/watch?v=dQw4w9WgXcQ&list=abc",
    ])
    def test_youtube_rewritten_to_embed(self, url):
        from futuretek.client.video import VideoKind, classify_video

        source = classify_video(url)

        assert source.kind == VideoKind.YOUTUBE
        assert source.embed_url == "https://www.youtube.com/embed/dQw4w9WgXcQ?autoplay=0&rel=0&modestbranding=1"
        assert source.label == "YouTube"
        assert source.has_playback_telemetry is False

    def test_existing_youtube_embed_gets_autoplay_off(self):
        from futuretek.client.video import classify_video

        source = classify_video("https://www.youtube.com/embed/abcdef123?start=10")

        assert source.embed_url == "https://www.youtube.com/embed/abcdef123?start=10&autoplay=0"

    def test_vimeo(self):
        from futuretek.client.video import VideoKind, classify_video

        source = classify_video("https://vimeo.com/76979871")

        assert source.kind == VideoKind.VIMEO
        assert source.embed_url == (
            "https://player.vimeo.com/video/76979871?autoplay=0&title=0&byline=0&portrait=0"
        )
        assert source.label == "Vimeo"

    @pytest.mark.parametrize("url,label", [
        ("https://cdn.example.com/lesson.mp4", "MP4 Video"),
        ("https://cdn.example.com/lesson.webm", "MP4 Video"),
        ("https://cdn.example.com/lesson.mp4?token=abc", "MP4 Video"),
        ("https://bucket.s3.amazonaws.com/lessons/intro", "AWS S3"),
        ("https://storage.googleapis.com/bucket/intro", "MP4 Video"),
    ])
    def test_direct_files_have_telemetry(self, url, label):
        from futuretek.client.video import VideoKind, classify_video

        source = classify_video(url)

        assert source.kind == VideoKind.DIRECT
        assert source.embed_url == url
        assert source.label == label
        assert source.has_playback_telemetry is True

    def test_other_urls_are_iframe_embeds(self):
        from futuretek.client.video import VideoKind, classify_video

        source = classify_video("https://player.example.com/watch/123")

        assert source.kind == VideoKind.EMBED
        assert source.label == "Video Content"
        assert source.has_playback_telemetry is False

    def test_normalize_adds_scheme(self):
        from futuretek.client.video import normalize_video_url

        assert normalize_video_url("  cdn.example.com/a.mp4 ") == "https://cdn.example.com/a.mp4"
        assert normalize_video_url("http://cdn.example.com/a.mp4") == "http://cdn.example.com/a.mp4"
