import os
from dataclasses import dataclass

try:
    from dotenv import load_dotenv
    load_dotenv()
except Exception:
    pass


@dataclass(frozen=True)
class BunnySettings:
    library_id: str | None = os.getenv("BUNNY_STREAM_LIBRARY_ID")
    api_key: str | None = os.getenv("BUNNY_STREAM_API_KEY")

    # Pull-zone hostname used for thumbnails, e.g. vz-abc123.b-cdn.net
    cdn_hostname: str | None = os.getenv("BUNNY_CDN_HOSTNAME")

    api_base: str = os.getenv("BUNNY_API_BASE", "https://video.bunnycdn.com")
    embed_base: str = os.getenv("BUNNY_EMBED_BASE", "https://iframe.mediadelivery.net/embed")

    create_timeout_sec: float = float(os.getenv("BUNNY_CREATE_TIMEOUT_SEC", "30"))
    upload_timeout_sec: float = float(os.getenv("BUNNY_UPLOAD_TIMEOUT_SEC", "300"))


bunny_settings = BunnySettings()
