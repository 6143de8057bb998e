import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote


class Platform(str, Enum):
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"
    YOUTUBE = "youtube"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        # Display form used in prompts / content metadata
        return {
            "tiktok": "TikTok",
            "instagram": "Instagram",
            "youtube": "YouTube",
        }.get(self.value, "Unknown")


@dataclass(frozen=True)
class PlatformInfo:
    platform: Platform
    identifier: str | None
    url: str

    @property
    def is_known(self) -> bool:
        return self.platform != Platform.UNKNOWN and bool(self.identifier)


# TikTok: numeric ids are final; short-link codes are resolved later by the adapter
_TIKTOK_VIDEO_RE = re.compile(r"tiktok\.com/(?:@[\w.-]+/video|v)/(\d+)", re.IGNORECASE)
_TIKTOK_SHORT_RE = re.compile(
    r"(?:(?:vm|vt)\.tiktok\.com/|tiktok\.com/t/)([A-Za-z0-9]+)",
    re.IGNORECASE,
)

_INSTAGRAM_RE = re.compile(
    r"(?:instagram\.com|instagr\.am)/(?:[\w.]+/)?(?:p|reels?|tv)/([A-Za-z0-9_-]+)",
    re.IGNORECASE,
)

_YOUTUBE_RES = (
    re.compile(r"youtube\.com/watch\?(?:[^#]*&)?v=([A-Za-z0-9_-]{11})", re.IGNORECASE),
    re.compile(r"youtu\.be/([A-Za-z0-9_-]{11})", re.IGNORECASE),
    re.compile(r"youtube\.com/(?:shorts|embed|v|live)/([A-Za-z0-9_-]{11})", re.IGNORECASE),
)

SHORT_LINK_PREFIX = "short:"


def is_tiktok_short_code(identifier: str | None) -> bool:
    return bool(identifier) and identifier.startswith(SHORT_LINK_PREFIX)


def detect_platform(url: str) -> PlatformInfo:
    """
    Map a URL to (platform, identifier). Pure: no network access.

    Supports:
    - https://www.tiktok.com/@user/video/1234567890
    - https://vm.tiktok.com/ZMabc123/ and https://www.tiktok.com/t/ZTabc123/
      (identifier is "short:<code>" until resolved)
    - https://www.instagram.com/reel/SHORTCODE/ , /reels/, /p/, /tv/
    - https://www.youtube.com/watch?v=VIDEOID , youtu.be/VIDEOID , /shorts/VIDEOID

    Anything else is Platform.UNKNOWN with identifier None.
    """
    raw = (url or "").strip()
    try:
        text = unquote(raw)
    except Exception:
        text = raw

    m = _TIKTOK_VIDEO_RE.search(text)
    if m:
        return PlatformInfo(Platform.TIKTOK, m.group(1), raw)

    m = _TIKTOK_SHORT_RE.search(text)
    if m:
        return PlatformInfo(Platform.TIKTOK, f"{SHORT_LINK_PREFIX}{m.group(1)}", raw)

    m = _INSTAGRAM_RE.search(text)
    if m:
        return PlatformInfo(Platform.INSTAGRAM, m.group(1), raw)

    for rx in _YOUTUBE_RES:
        m = rx.search(text)
        if m:
            return PlatformInfo(Platform.YOUTUBE, m.group(1), raw)

    return PlatformInfo(Platform.UNKNOWN, None, raw)


def is_supported_platform(platform: Platform | str) -> bool:
    try:
        return Platform(platform) != Platform.UNKNOWN
    except ValueError:
        return False
