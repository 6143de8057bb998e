import os
from dataclasses import dataclass

try:
    from dotenv import load_dotenv
    load_dotenv()
except Exception:
    pass


@dataclass(frozen=True)
class PlatformSettings:
    # Third-party scraper API (TikTok + Instagram metadata)
    rapidapi_key: str | None = os.getenv("RAPIDAPI_KEY")
    tiktok_rapidapi_host: str = os.getenv(
        "TIKTOK_RAPIDAPI_HOST",
        "tiktok-scrapper-videos-music-challenges-downloader.p.rapidapi.com",
    )
    instagram_rapidapi_host: str = os.getenv(
        "INSTAGRAM_RAPIDAPI_HOST",
        "instagram-scrapper-posts-reels-stories-downloader.p.rapidapi.com",
    )

    # Timeouts (seconds)
    metadata_timeout_sec: float = float(os.getenv("METADATA_TIMEOUT_SEC", "30"))
    rendition_timeout_sec: float = float(os.getenv("RENDITION_TIMEOUT_SEC", "20"))
    shortlink_timeout_sec: float = float(os.getenv("SHORTLINK_TIMEOUT_SEC", "10"))

    # Anything at or below this is an error page, not a video
    min_video_bytes: int = int(os.getenv("MIN_VIDEO_BYTES", "1000"))

    # Metadata cache
    metadata_cache_ttl_sec: float = float(os.getenv("METADATA_CACHE_TTL_SEC", "86400"))
    metadata_cache_max_entries: int = int(os.getenv("METADATA_CACHE_MAX_ENTRIES", "100"))

    user_agent: str = os.getenv(
        "PLATFORM_USER_AGENT",
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) "
        "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
    )


platform_settings = PlatformSettings()
