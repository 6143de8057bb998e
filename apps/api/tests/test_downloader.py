import httpx
import pytest

from conftest import INSTAGRAM_HOST, TIKTOK_HOST, VIDEO_BYTES, FakeUpstream, tiktok_payload
from reelpipe.services.cache import metadata_cache
from reelpipe.services.downloader import Downloader, order_smallest_first
from reelpipe.services.errors import (
    DownloadFailed,
    InvalidInput,
    NotFoundOrPrivate,
    RateLimited,
    ServiceUnavailable,
)
from reelpipe.services.platforms import Platform
from reelpipe.services.platforms.base import Rendition
from reelpipe.services.platforms.tiktok import TikTokAdapter

VIDEO_ID = "7234567890123456789"
TIKTOK_META = f"https://{TIKTOK_HOST}/video/{VIDEO_ID}"


def _downloader(upstream, **kwargs):
    return Downloader(transport=upstream.transport, **kwargs)


def test_tiktok_fetch_tries_lowest_quality_first_and_reports_metrics(upstream):
    hq = "https://v16.tiktokcdn.com/hq.mp4"
    lq = "https://v16.tiktokcdn.com/lq.mp4"
    upstream.add("GET", TIKTOK_META, json=tiktok_payload([hq, lq]))
    upstream.add("GET", lq, content=VIDEO_BYTES, headers={"content-type": "video/mp4"})
    upstream.add("GET", hq, content=VIDEO_BYTES * 4, headers={"content-type": "video/mp4"})

    result = _downloader(upstream).fetch(Platform.TIKTOK, VIDEO_ID)

    assert result.media.data == VIDEO_BYTES
    assert result.media.mime_type == "video/mp4"
    assert result.media.size == len(VIDEO_BYTES)
    assert result.media.filename == f"tiktok-{VIDEO_ID}.mp4"
    assert upstream.requests_to("GET", hq) == []

    metrics = result.info.metrics
    assert metrics.views == 125000
    assert metrics.likes == 5400
    assert metrics.saves == 430

    details = result.info.details
    assert details.author == "Jane Creator"
    assert details.duration_seconds == 15.0
    assert details.hashtags == ["marketing", "growth"]
    assert details.thumbnail_url == "https://p16.tiktokcdn.com/cover.jpg"

    # rapidapi headers are sent on the metadata call
    meta_req = upstream.requests_to("GET", TIKTOK_META)[0]
    assert meta_req.headers["x-rapidapi-host"] == TIKTOK_HOST
    assert meta_req.headers["x-rapidapi-key"] == "test-rapidapi-key"


def test_renditions_with_size_hints_go_smallest_first_and_stop_at_first_good_body(upstream):
    big = "https://v16.tiktokcdn.com/1080.mp4"
    mid = "https://v16.tiktokcdn.com/720.mp4"
    small = "https://v16.tiktokcdn.com/540.mp4"
    payload = tiktok_payload([])
    payload["data"]["aweme_detail"]["video"]["bit_rate"] = [
        {"bit_rate": 2500000, "play_addr": {"url_list": [big], "data_size": 9000000, "width": 1080, "height": 1920}},
        {"bit_rate": 900000, "play_addr": {"url_list": [small], "data_size": 1200000, "width": 540, "height": 960}},
        {"bit_rate": 1500000, "play_addr": {"url_list": [mid], "data_size": 4000000, "width": 720, "height": 1280}},
    ]
    upstream.add("GET", TIKTOK_META, json=payload)
    # smallest answers with an error page body, next one is real
    upstream.add("GET", small, content=b"<html>denied</html>")
    upstream.add("GET", mid, content=VIDEO_BYTES)
    upstream.add("GET", big, content=VIDEO_BYTES)

    result = _downloader(upstream).fetch(Platform.TIKTOK, VIDEO_ID)

    assert result.media.source_url == mid
    attempted = [str(r.url) for r in upstream.calls if "tiktokcdn" in str(r.url)]
    assert attempted == [small, mid]
    # CDN requests carry the referer TikTok expects
    assert upstream.requests_to("GET", mid)[0].headers["referer"] == "https://www.tiktok.com/"


def test_order_smallest_first_without_hints_reverses():
    a, b, c = Rendition(url="a"), Rendition(url="b"), Rendition(url="c")
    assert [r.url for r in order_smallest_first([a, b, c])] == ["c", "b", "a"]


def test_order_smallest_first_puts_unhinted_renditions_last():
    hinted_big = Rendition(url="big", width=1080, height=1920)
    hinted_small = Rendition(url="small", width=540, height=960)
    plain = Rendition(url="plain")
    ordered = order_smallest_first([plain, hinted_big, hinted_small])
    assert [r.url for r in ordered] == ["small", "big", "plain"]


@pytest.mark.parametrize(
    "status,error",
    [(429, RateLimited), (404, NotFoundOrPrivate), (500, ServiceUnavailable), (403, ServiceUnavailable)],
)
def test_metadata_status_codes_are_classified(upstream, status, error):
    upstream.add("GET", TIKTOK_META, status=status, json={"message": "nope"})

    with pytest.raises(error) as exc:
        _downloader(upstream).fetch(Platform.TIKTOK, VIDEO_ID)
    assert exc.value.status_code in (429, 404, 503)


def test_metadata_timeout_is_service_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    d = Downloader(transport=httpx.MockTransport(handler))
    with pytest.raises(ServiceUnavailable):
        d.fetch(Platform.TIKTOK, VIDEO_ID)


def test_zero_renditions_is_not_found_and_downloads_nothing(upstream):
    upstream.add("GET", TIKTOK_META, json=tiktok_payload([]))

    with pytest.raises(NotFoundOrPrivate):
        _downloader(upstream).fetch(Platform.TIKTOK, VIDEO_ID)
    assert len(upstream.calls) == 1


def test_all_renditions_failing_is_download_failed(upstream):
    urls = ["https://v16.tiktokcdn.com/a.mp4", "https://v16.tiktokcdn.com/b.mp4"]
    upstream.add("GET", TIKTOK_META, json=tiktok_payload(urls))
    upstream.add("GET", urls[0], status=403, content=b"forbidden")
    upstream.add("GET", urls[1], content=b"x" * 1000)  # exactly at the threshold

    with pytest.raises(DownloadFailed):
        _downloader(upstream).fetch(Platform.TIKTOK, VIDEO_ID)
    assert len(upstream.requests_to("GET", "https://v16.tiktokcdn.com/")) == 2


def test_metadata_cache_skips_second_api_call_until_expiry(upstream):
    url = "https://v16.tiktokcdn.com/only.mp4"
    upstream.add("GET", TIKTOK_META, json=tiktok_payload([url]))
    upstream.add("GET", url, content=VIDEO_BYTES)

    now = [0.0]
    cache = metadata_cache(timer=lambda: now[0])
    d = _downloader(upstream, cache=cache)

    d.fetch(Platform.TIKTOK, VIDEO_ID)
    d.fetch(Platform.TIKTOK, VIDEO_ID)
    assert len(upstream.requests_to("GET", TIKTOK_META)) == 1

    now[0] += 86401
    d.fetch(Platform.TIKTOK, VIDEO_ID)
    assert len(upstream.requests_to("GET", TIKTOK_META)) == 2


def test_tiktok_short_link_is_resolved_through_redirect(upstream):
    upstream.add(
        "HEAD",
        "https://vm.tiktok.com/ZMabc123/",
        status=301,
        headers={"location": f"https://www.tiktok.com/@jane/video/{VIDEO_ID}"},
    )
    upstream.add("HEAD", f"https://www.tiktok.com/@jane/video/{VIDEO_ID}", status=200)
    url = "https://v16.tiktokcdn.com/only.mp4"
    upstream.add("GET", TIKTOK_META, json=tiktok_payload([url]))

    info = _downloader(upstream).resolve(Platform.TIKTOK, "short:ZMabc123")
    assert info.identifier == VIDEO_ID
    assert [r.url for r in info.renditions] == [url]


def test_instagram_falls_back_to_public_endpoint_when_api_fails(upstream):
    shortcode = "C8xYz_Ab-12"
    upstream.add("GET", f"https://{INSTAGRAM_HOST}/reel_by_shortcode", status=500, json={"error": "boom"})
    upstream.add(
        "GET",
        f"https://www.instagram.com/p/{shortcode}/",
        json={
            "graphql": {
                "shortcode_media": {
                    "video_url": "https://scontent.cdninstagram.com/v/reel.mp4",
                    "dimensions": {"width": 720, "height": 1280},
                    "video_view_count": 5100,
                    "edge_media_preview_like": {"count": 321},
                    "edge_media_to_comment": {"count": 12},
                    "owner": {"username": "jane.creates"},
                    "edge_media_to_caption": {"edges": [{"node": {"text": "Morning routine #lifestyle"}}]},
                }
            }
        },
    )
    upstream.add("GET", "https://scontent.cdninstagram.com/v/reel.mp4", content=VIDEO_BYTES)

    result = _downloader(upstream).fetch(Platform.INSTAGRAM, shortcode)

    assert result.media.data == VIDEO_BYTES
    assert result.info.metrics.views == 5100
    assert result.info.metrics.likes == 321
    assert result.info.details.author == "jane.creates"
    assert result.info.details.hashtags == ["lifestyle"]
    # the public request carries the shortcode query flags
    public = upstream.requests_to("GET", f"https://www.instagram.com/p/{shortcode}/")[0]
    assert public.url.params["__a"] == "1"


def test_instagram_api_shape_tries_smallest_version_first(upstream):
    shortcode = "CqWerty123"
    upstream.add(
        "GET",
        f"https://{INSTAGRAM_HOST}/reel_by_shortcode",
        json={
            "video_versions": [
                {"url": "https://scontent.cdninstagram.com/1080.mp4", "width": 1080, "height": 1920},
                {"url": "https://scontent.cdninstagram.com/480.mp4", "width": 480, "height": 854},
            ],
            "like_count": 10,
            "play_count": 900,
            "save_count": 7,
            "caption": {"text": "Tips #business #growth"},
            "user": {"username": "biz.tips"},
            "image_versions2": {"candidates": [{"url": "https://scontent.cdninstagram.com/thumb.jpg"}]},
        },
    )
    upstream.add("GET", "https://scontent.cdninstagram.com/480.mp4", content=VIDEO_BYTES)

    result = _downloader(upstream).fetch(Platform.INSTAGRAM, shortcode)

    assert result.media.source_url == "https://scontent.cdninstagram.com/480.mp4"
    assert result.info.metrics.saves == 7
    assert result.info.details.thumbnail_url == "https://scontent.cdninstagram.com/thumb.jpg"
    assert upstream.requests_to("GET", "https://www.instagram.com/") == []


def test_instagram_reports_primary_error_when_every_endpoint_fails(upstream):
    shortcode = "CqWerty123"
    upstream.add("GET", f"https://{INSTAGRAM_HOST}/reel_by_shortcode", status=429, json={})
    upstream.add("GET", f"https://www.instagram.com/p/{shortcode}/", status=404, json={})
    upstream.add("GET", f"https://www.instagram.com/reel/{shortcode}/", status=500, json={})

    with pytest.raises(RateLimited):
        _downloader(upstream).fetch(Platform.INSTAGRAM, shortcode)


def test_adapter_yielding_no_endpoints_is_service_unavailable(upstream):
    class NoEndpoints(TikTokAdapter):
        def metadata_requests(self, identifier):
            return iter(())

    with httpx.Client(transport=upstream.transport) as client, pytest.raises(ServiceUnavailable):
        NoEndpoints().fetch_metadata(client, VIDEO_ID)
    assert upstream.calls == []


def test_unknown_platform_is_invalid_input():
    d = Downloader(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    with pytest.raises(InvalidInput):
        d.fetch("unknown", "x")


def test_shared_upstream_fixture_records_unrouted_calls():
    upstream = FakeUpstream()
    with httpx.Client(transport=upstream.transport) as c:
        assert c.get("https://nowhere.test/x").status_code == 404
    assert len(upstream.calls) == 1
