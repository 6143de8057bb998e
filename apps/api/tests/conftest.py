import os
import tempfile

# Settings are read at import time, so the environment has to be in place
# before anything from reelpipe is imported.
_TMP_DIR = tempfile.mkdtemp(prefix="reelpipe-tests-")
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["MEDIA_DIR"] = os.path.join(_TMP_DIR, "media")
os.environ["ANALYSIS_MODE"] = "single"
os.environ["STREAM_TO_CDN_PLATFORMS"] = ""
os.environ["RAPIDAPI_KEY"] = "test-rapidapi-key"
os.environ["BUNNY_STREAM_LIBRARY_ID"] = "lib123"
os.environ["BUNNY_STREAM_API_KEY"] = "bunny-test-key"
os.environ["BUNNY_CDN_HOSTNAME"] = "vz-test123.b-cdn.net"

import httpx  # noqa: E402
import pytest  # noqa: E402

from reelpipe.core.platform_settings import platform_settings  # noqa: E402
from reelpipe.db.base import Base  # noqa: E402
from reelpipe.db.session import SessionLocal, engine  # noqa: E402
from reelpipe.services.analyzer import Analyzer  # noqa: E402
from reelpipe.services.cdn import BunnyStreamRelay  # noqa: E402
from reelpipe.services.downloader import Downloader  # noqa: E402
from reelpipe.services.ingestion import IngestionService, set_ingestion_service  # noqa: E402
from reelpipe.services.job_dispatch import dispatch_analysis  # noqa: E402
from reelpipe.services.media_store import LocalMediaStore  # noqa: E402

Base.metadata.create_all(bind=engine)

TIKTOK_HOST = platform_settings.tiktok_rapidapi_host
INSTAGRAM_HOST = platform_settings.instagram_rapidapi_host
BUNNY_VIDEOS = "https://video.bunnycdn.com/library/lib123/videos"
BUNNY_GUID = "3f1c2b9e-7d4a-4c1e-9a7d-2b10c0ffee00"

VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 4096


class FakeUpstream:
    """
    httpx.MockTransport handler keyed by (METHOD, url without query).
    Unrouted requests get a 404 so a missing route shows up as a failure.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method, url, status=200, json=None, content=None, headers=None, handler=None):
        def make(request):
            if handler is not None:
                return handler(request)
            if json is not None:
                return httpx.Response(status, json=json, headers=headers)
            return httpx.Response(status, content=content or b"", headers=headers)

        self.routes[(method.upper(), url)] = make
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.calls.append(request)
        key = (request.method, str(request.url).split("?")[0])
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, json={"error": "no route", "url": str(request.url)})
        return route(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def requests_to(self, method, prefix):
        return [r for r in self.calls if r.method == method.upper() and str(r.url).startswith(prefix)]


class FakeModelClient:
    """Stands in for Gemini/OpenAI: returns canned text or raises."""

    name = "fake"

    def __init__(self, *responses, error=None):
        self.responses = list(responses)
        self.error = error
        self.calls = []
        self.last_method = None

    def generate(self, prompt, media=None):
        self.calls.append({"prompt": prompt, "media": media})
        if self.error is not None:
            raise self.error
        if media is not None:
            self.last_method = "inline" if media.is_inline else "url"
        if not self.responses:
            return ""
        if len(self.responses) == 1:
            return self.responses[0]
        return self.responses.pop(0)


def tiktok_payload(urls, *, views=125000, desc="Three hooks that always work #marketing #growth #marketing"):
    return {
        "data": {
            "aweme_detail": {
                "aweme_id": "7234567890123456789",
                "desc": desc,
                "author": {"nickname": "Jane Creator", "unique_id": "janecreates"},
                "statistics": {
                    "digg_count": 5400,
                    "play_count": views,
                    "comment_count": 210,
                    "share_count": 88,
                    "collect_count": 430,
                },
                "video": {
                    "duration": 15000,
                    "play_addr": {"url_list": list(urls)},
                    "cover": {"url_list": ["https://p16.tiktokcdn.com/cover.jpg"]},
                },
            }
        }
    }


GOOD_ANALYSIS = """```json
{
  "transcript": "Stop scrolling. Here are three hooks that always work. Number one, ask a question.",
  "components": {
    "hook": "Stop scrolling.",
    "bridge": "Here are three hooks that always work.",
    "nugget": "Ask a question your viewer already has.",
    "wta": "Follow for part two."
  },
  "contentMetadata": {
    "platform": "TikTok",
    "author": "Jane Creator",
    "description": "Three proven hook formulas for short videos.",
    "source": "educational",
    "hashtags": ["#marketing", "hooks"]
  }
}
```"""


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def fake_model():
    return FakeModelClient(GOOD_ANALYSIS)


@pytest.fixture
def make_service(upstream, tmp_path):
    """Builds an IngestionService wired to fakes and installs it process-wide."""

    def build(model=None, **analyzer_kwargs):
        model = model or FakeModelClient(GOOD_ANALYSIS)
        service = IngestionService(
            downloader=Downloader(transport=upstream.transport),
            relay=BunnyStreamRelay(transport=upstream.transport),
            analyzer=Analyzer(model, mode=analyzer_kwargs.pop("mode", "single"), **analyzer_kwargs),
            media_store=LocalMediaStore(tmp_path / "media"),
            dispatch=lambda job_id, task_id: dispatch_analysis(job_id, task_id=task_id),
        )
        set_ingestion_service(service)
        return service

    yield build
    set_ingestion_service(None)
