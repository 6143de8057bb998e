import pytest

from reelpipe.services.platforms.detector import (
    Platform,
    detect_platform,
    is_supported_platform,
    is_tiktok_short_code,
)


@pytest.mark.parametrize(
    "url,platform,identifier",
    [
        ("https://www.tiktok.com/@jane.creates/video/7234567890123456789", Platform.TIKTOK, "7234567890123456789"),
        ("https://www.tiktok.com/@jane_creates/video/7234567890123456789?is_from_webapp=1", Platform.TIKTOK, "7234567890123456789"),
        ("https://m.tiktok.com/v/7234567890123456789.html", Platform.TIKTOK, "7234567890123456789"),
        ("https://www.instagram.com/reel/C8xYz_Ab-12/", Platform.INSTAGRAM, "C8xYz_Ab-12"),
        ("https://www.instagram.com/reels/C8xYz_Ab-12/?igsh=abc", Platform.INSTAGRAM, "C8xYz_Ab-12"),
        ("https://instagram.com/p/CqWerty123/", Platform.INSTAGRAM, "CqWerty123"),
        ("https://instagr.am/p/CqWerty123", Platform.INSTAGRAM, "CqWerty123"),
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", Platform.YOUTUBE, "dQw4w9WgXcQ"),
        ("https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ", Platform.YOUTUBE, "dQw4w9WgXcQ"),
        ("https://youtu.be/dQw4w9WgXcQ", Platform.YOUTUBE, "dQw4w9WgXcQ"),
        ("https://www.youtube.com/shorts/dQw4w9WgXcQ", Platform.YOUTUBE, "dQw4w9WgXcQ"),
        ("https://www.youtube.com/embed/dQw4w9WgXcQ", Platform.YOUTUBE, "dQw4w9WgXcQ"),
    ],
)
def test_canonical_urls_are_detected(url, platform, identifier):
    info = detect_platform(url)
    assert info.platform == platform
    assert info.identifier == identifier
    assert info.is_known
    assert info.url == url


def test_tiktok_short_links_keep_their_code_for_later_resolution():
    for url in ("https://vm.tiktok.com/ZMabc123/", "https://www.tiktok.com/t/ZTdef456/"):
        info = detect_platform(url)
        assert info.platform == Platform.TIKTOK
        assert is_tiktok_short_code(info.identifier)
        assert info.identifier.split(":", 1)[1] in url


def test_url_encoded_links_are_decoded_first():
    info = detect_platform("https%3A%2F%2Fwww.instagram.com%2Freel%2FC8xYz_Ab-12%2F")
    assert info.platform == Platform.INSTAGRAM
    assert info.identifier == "C8xYz_Ab-12"


@pytest.mark.parametrize(
    "url",
    [
        "",
        "   ",
        "not a url",
        "https://example.com/video/123",
        "https://www.tiktok.com/@jane.creates",
        "https://www.instagram.com/jane.creates/",
        "https://www.youtube.com/watch?v=short",
        "https://vimeo.com/123456",
    ],
)
def test_everything_else_is_unknown(url):
    info = detect_platform(url)
    assert info.platform == Platform.UNKNOWN
    assert info.identifier is None
    assert not info.is_known


def test_supported_platform_check():
    assert is_supported_platform("tiktok")
    assert is_supported_platform(Platform.INSTAGRAM)
    assert not is_supported_platform("unknown")
    assert not is_supported_platform("vimeo")


def test_platform_labels():
    assert Platform.TIKTOK.label == "TikTok"
    assert Platform.YOUTUBE.label == "YouTube"
    assert Platform.UNKNOWN.label == "Unknown"
