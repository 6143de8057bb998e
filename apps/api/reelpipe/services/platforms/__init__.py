from reelpipe.services.platforms.base import PlatformAdapter
from reelpipe.services.platforms.detector import Platform, PlatformInfo, detect_platform
from reelpipe.services.platforms.instagram import InstagramAdapter
from reelpipe.services.platforms.tiktok import TikTokAdapter
from reelpipe.services.platforms.youtube import YouTubeAdapter


def default_adapters(settings=None) -> dict[Platform, PlatformAdapter]:
    return {
        Platform.TIKTOK: TikTokAdapter(settings),
        Platform.INSTAGRAM: InstagramAdapter(settings),
        Platform.YOUTUBE: YouTubeAdapter(settings),
    }


__all__ = [
    "Platform",
    "PlatformInfo",
    "PlatformAdapter",
    "TikTokAdapter",
    "InstagramAdapter",
    "YouTubeAdapter",
    "default_adapters",
    "detect_platform",
]
