import json
import subprocess

import httpx
import pytest

from conftest import VIDEO_BYTES, FakeUpstream
from reelpipe.core.youtube_settings import YouTubeSettings
from reelpipe.services.downloader import Downloader
from reelpipe.services.errors import NotFoundOrPrivate, RateLimited, ServiceUnavailable
from reelpipe.services.platforms import Platform
from reelpipe.services.platforms import youtube as youtube_mod
from reelpipe.services.platforms.youtube import YouTubeAdapter

VIDEO_ID = "dQw4w9WgXcQ"

YTDLP_JSON = {
    "id": VIDEO_ID,
    "uploader": "Creator Channel",
    "duration": 42,
    "view_count": 9001,
    "like_count": 120,
    "comment_count": 7,
    "description": "Shorts tips #shorts #growth",
    "thumbnail": "https://i.ytimg.com/vi/dQw4w9WgXcQ/hq.jpg",
    "formats": [
        {"url": "https://rr1.googlevideo.com/audio", "vcodec": "none", "acodec": "mp4a"},
        {"url": "https://rr1.googlevideo.com/hls.m3u8", "vcodec": "avc1", "acodec": "mp4a", "protocol": "m3u8_native"},
        {"url": "https://rr1.googlevideo.com/720", "vcodec": "avc1", "acodec": "mp4a", "width": 1280, "height": 720},
        {"url": "https://rr1.googlevideo.com/360", "vcodec": "avc1", "acodec": "mp4a", "width": 640, "height": 360},
    ],
}


def _fake_run(stdout="", stderr="", returncode=0, error=None):
    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        if error is not None:
            raise error
        if returncode:
            raise subprocess.CalledProcessError(returncode, cmd, output=stdout, stderr=stderr)
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr=stderr)

    run.calls = calls
    return run


def test_ytdlp_metadata_becomes_renditions_and_metrics(monkeypatch):
    run = _fake_run(stdout=json.dumps(YTDLP_JSON))
    monkeypatch.setattr(youtube_mod.subprocess, "run", run)
    upstream = FakeUpstream()
    upstream.add("GET", "https://rr1.googlevideo.com/360", content=VIDEO_BYTES)

    result = Downloader(transport=upstream.transport).fetch(Platform.YOUTUBE, VIDEO_ID)

    assert result.media.source_url == "https://rr1.googlevideo.com/360"
    assert result.info.metrics.views == 9001
    assert result.info.metrics.shares == 0
    assert result.info.details.author == "Creator Channel"
    assert result.info.details.hashtags == ["shorts", "growth"]
    assert [r.url for r in result.info.renditions] == [
        "https://rr1.googlevideo.com/360",
        "https://rr1.googlevideo.com/720",
    ]
    assert run.calls[0][-1] == f"https://www.youtube.com/watch?v={VIDEO_ID}"
    assert "--skip-download" in run.calls[0]


def test_cookies_and_proxy_are_passed_to_ytdlp(monkeypatch):
    run = _fake_run(stdout=json.dumps(YTDLP_JSON))
    monkeypatch.setattr(youtube_mod.subprocess, "run", run)
    adapter = YouTubeAdapter(yt=YouTubeSettings(cookies_file="/tmp/cookies.txt", proxy_url="http://127.0.0.1:7890"))

    with httpx.Client() as client:
        adapter.fetch_metadata(client, VIDEO_ID)

    cmd = run.calls[0]
    assert cmd[cmd.index("--cookies") + 1] == "/tmp/cookies.txt"
    assert cmd[cmd.index("--proxy") + 1] == "http://127.0.0.1:7890"


@pytest.mark.parametrize(
    "stderr,error",
    [
        ("ERROR: HTTP Error 429: Too Many Requests", RateLimited),
        ("ERROR: [youtube] dQw4w9WgXcQ: Private video. Sign in if you've been granted access", NotFoundOrPrivate),
        ("ERROR: [youtube] dQw4w9WgXcQ: Video unavailable", NotFoundOrPrivate),
        ("ERROR: unable to extract player response", ServiceUnavailable),
    ],
)
def test_ytdlp_errors_are_classified(monkeypatch, stderr, error):
    monkeypatch.setattr(youtube_mod.subprocess, "run", _fake_run(stderr=stderr, returncode=1))

    with httpx.Client() as client, pytest.raises(error):
        YouTubeAdapter().fetch_metadata(client, VIDEO_ID)


@pytest.mark.parametrize(
    "run",
    [
        _fake_run(error=FileNotFoundError("yt-dlp")),
        _fake_run(error=subprocess.TimeoutExpired("yt-dlp", 60)),
        _fake_run(stdout=""),
        _fake_run(stdout="not json"),
    ],
)
def test_ytdlp_unusable_output_is_service_unavailable(monkeypatch, run):
    monkeypatch.setattr(youtube_mod.subprocess, "run", run)

    with httpx.Client() as client, pytest.raises(ServiceUnavailable):
        YouTubeAdapter().fetch_metadata(client, VIDEO_ID)
