import os
from dataclasses import dataclass

try:
    from dotenv import load_dotenv
    load_dotenv()
except Exception:
    pass


@dataclass(frozen=True)
class YouTubeSettings:
    # yt-dlp executable (resolved through PATH by default)
    ytdlp_bin: str = os.getenv("YTDLP_BIN", "yt-dlp")

    # Optional: path to cookies.txt (Netscape format). Helps bypass anon blocks.
    cookies_file: str | None = os.getenv("YOUTUBE_COOKIES_FILE")

    # Optional: proxy URL, e.g. http://127.0.0.1:7890
    proxy_url: str | None = os.getenv("YOUTUBE_PROXY_URL")

    metadata_timeout_sec: int = int(os.getenv("YOUTUBE_METADATA_TIMEOUT_SEC", "60"))


youtube_settings = YouTubeSettings()
