from __future__ import annotations

import json
import logging
import subprocess
from typing import Any

import httpx

from reelpipe.core.youtube_settings import YouTubeSettings, youtube_settings
from reelpipe.services.errors import NotFoundOrPrivate, RateLimited, ServiceUnavailable
from reelpipe.services.platforms.base import (
    EngagementMetrics,
    MetadataRequest,
    PlatformAdapter,
    Rendition,
    VideoDetails,
    dedupe_renditions,
    extract_hashtags,
    normalize_hashtags,
    to_int,
    to_opt_float,
    to_opt_int,
)
from reelpipe.services.platforms.detector import Platform

logger = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = (
    "private video",
    "video unavailable",
    "has been removed",
    "this video is not available",
    "does not exist",
    "sign in to confirm your age",
)


def build_video_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def _classify_ytdlp_error(stderr: str) -> Exception:
    low = (stderr or "").lower()
    if "429" in low or "too many requests" in low:
        return RateLimited("YouTube rate limit exceeded, try again later")
    if any(m in low for m in _NOT_FOUND_MARKERS):
        return NotFoundOrPrivate("YouTube video not found, private or deleted")
    return ServiceUnavailable(f"yt-dlp failed: {stderr.strip()[:300] or 'unknown error'}")


class YouTubeAdapter(PlatformAdapter):
    """
    Metadata comes from the yt-dlp CLI instead of an HTTP API.
    Progressive (muxed audio+video, non-HLS) formats become renditions.
    """

    platform = Platform.YOUTUBE
    service_name = "YouTube"

    def __init__(self, settings=None, yt: YouTubeSettings | None = None) -> None:
        super().__init__(settings)
        self.yt = yt or youtube_settings

    def metadata_requests(self, identifier: str) -> list[MetadataRequest]:
        return []

    def _command(self, identifier: str) -> list[str]:
        cmd = [
            self.yt.ytdlp_bin,
            "--dump-single-json",
            "--no-playlist",
            "--no-warnings",
            "--skip-download",
        ]
        if self.yt.cookies_file:
            cmd.extend(["--cookies", self.yt.cookies_file])
        if self.yt.proxy_url:
            cmd.extend(["--proxy", self.yt.proxy_url])
        cmd.append(build_video_url(identifier))
        return cmd

    def fetch_metadata(self, client: httpx.Client, identifier: str) -> dict[str, Any]:
        try:
            p = subprocess.run(
                self._command(identifier),
                check=True,
                capture_output=True,
                text=True,
                timeout=self.yt.metadata_timeout_sec,
            )
        except FileNotFoundError as e:
            raise ServiceUnavailable("yt-dlp not found. Install it and ensure it is on PATH.") from e
        except subprocess.TimeoutExpired as e:
            raise ServiceUnavailable("yt-dlp timed out while fetching video metadata.") from e
        except subprocess.CalledProcessError as e:
            raise _classify_ytdlp_error(e.stderr or "") from e

        raw = (p.stdout or "").strip()
        if not raw:
            raise ServiceUnavailable("yt-dlp returned empty output for video metadata.")
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ServiceUnavailable("Could not parse yt-dlp JSON output for video metadata.") from e
        if not isinstance(data, dict):
            raise ServiceUnavailable("yt-dlp returned an unexpected payload.")
        return data

    def extract_renditions(self, payload: dict[str, Any]) -> list[Rendition]:
        out: list[Rendition] = []
        for f in payload.get("formats") or []:
            if not isinstance(f, dict) or not f.get("url"):
                continue
            if (f.get("vcodec") or "none") == "none" or (f.get("acodec") or "none") == "none":
                continue
            if (f.get("protocol") or "https") not in ("http", "https"):
                continue
            out.append(
                Rendition(
                    url=f["url"],
                    width=to_opt_int(f.get("width")),
                    height=to_opt_int(f.get("height")),
                    bitrate=to_opt_int(f.get("tbr")),
                    size_bytes=to_opt_int(f.get("filesize") or f.get("filesize_approx")),
                    headers=dict(f.get("http_headers") or {}),
                )
            )
        return dedupe_renditions(out)

    def extract_metrics(self, payload: dict[str, Any]) -> EngagementMetrics:
        # YouTube exposes no share / save counts
        return EngagementMetrics(
            likes=to_int(payload.get("like_count")),
            views=to_int(payload.get("view_count")),
            comments=to_int(payload.get("comment_count")),
        )

    def extract_details(self, payload: dict[str, Any]) -> VideoDetails:
        description = payload.get("description") or ""
        tags = normalize_hashtags(payload.get("tags")) or extract_hashtags(description)
        return VideoDetails(
            author=payload.get("uploader") or payload.get("channel"),
            duration_seconds=to_opt_float(payload.get("duration")),
            description=description,
            hashtags=tags,
            thumbnail_url=payload.get("thumbnail"),
        )
