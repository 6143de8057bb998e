from __future__ import annotations

import io
import logging
import re
import time
from typing import Any

import httpx

from reelpipe.core.config import Settings, settings as app_settings
from reelpipe.services.errors import ModelUnavailable
from reelpipe.services.llm.base import VideoRef

logger = logging.getLogger(__name__)

_YOUTUBE_URL_RE = re.compile(r"(?:youtube\.com|youtu\.be)/", re.IGNORECASE)


def _state_name(f: Any) -> str:
    state = getattr(f, "state", None)
    return str(getattr(state, "name", state) or "").upper()


class GeminiClient:
    """
    google-genai wrapper.

    - bytes up to gemini_inline_max_bytes go inline
    - larger bytes go through the Files API (upload, wait until ACTIVE, delete after)
    - YouTube URLs are handed to the model as file URIs; other URLs are fetched and inlined
    """

    name = "gemini"

    def __init__(self, settings: Settings | None = None, *, transport: httpx.BaseTransport | None = None) -> None:
        self.settings = settings or app_settings
        self._client = None
        self._transport = transport
        # How the last media call was sent: inline | file_upload | url
        self.last_method: str | None = None

    def _get_client(self):
        """Keep a single SDK client per instance."""
        if self._client is not None:
            return self._client
        if not self.settings.gemini_api_key:
            raise ModelUnavailable("GEMINI_API_KEY is missing")

        from google import genai
        from google.genai import types

        self._client = genai.Client(
            api_key=self.settings.gemini_api_key,
            http_options=types.HttpOptions(timeout=int(self.settings.gemini_timeout_sec * 1000)),
        )
        return self._client

    # ----------------------------
    # media parts
    # ----------------------------

    def _upload_file(self, client, media: VideoRef):
        f = client.files.upload(
            file=io.BytesIO(media.data or b""),
            config={"mime_type": media.mime_type, "display_name": media.filename or "video"},
        )
        deadline = time.monotonic() + self.settings.gemini_file_max_wait_sec
        while _state_name(f) == "PROCESSING":
            if time.monotonic() >= deadline:
                raise ModelUnavailable("Gemini file processing timed out")
            time.sleep(self.settings.gemini_file_poll_sec)
            f = client.files.get(name=f.name)

        if _state_name(f) == "FAILED":
            raise ModelUnavailable("Gemini file processing failed")
        return f

    def _fetch_url(self, url: str, headers: dict[str, str] | None = None) -> bytes:
        with httpx.Client(
            transport=self._transport,
            timeout=self.settings.gemini_timeout_sec,
            follow_redirects=True,
        ) as c:
            r = c.get(url, headers=headers or None)
            r.raise_for_status()
            return r.content

    def _media_part(self, client, media: VideoRef) -> tuple[Any, Any]:
        """Returns (part, uploaded_file_or_None)."""
        from google.genai import types

        if media.url and not media.data and _YOUTUBE_URL_RE.search(media.url):
            self.last_method = "url"
            return types.Part.from_uri(file_uri=media.url, mime_type="video/*"), None

        data = media.data
        if not data:
            data = self._fetch_url(media.url or "", media.headers)
            self.last_method = "url"
        else:
            self.last_method = "inline"

        if len(data) <= self.settings.gemini_inline_max_bytes:
            return types.Part.from_bytes(data=data, mime_type=media.mime_type), None

        uploaded = self._upload_file(
            client, VideoRef(data=data, mime_type=media.mime_type, filename=media.filename)
        )
        self.last_method = "file_upload"
        part = types.Part.from_uri(file_uri=uploaded.uri, mime_type=uploaded.mime_type or media.mime_type)
        return part, uploaded

    # ----------------------------
    # public API
    # ----------------------------

    def generate(self, prompt: str, media: VideoRef | None = None) -> str:
        client = self._get_client()
        uploaded = None
        try:
            contents: list[Any] = []
            if media is not None:
                part, uploaded = self._media_part(client, media)
                contents.append(part)
            contents.append(prompt)

            resp = client.models.generate_content(model=self.settings.gemini_model, contents=contents)
            text = (getattr(resp, "text", None) or "").strip()
            logger.info("gemini %s returned %d chars", self.settings.gemini_model, len(text))
            return text
        except ModelUnavailable:
            raise
        except Exception as e:
            raise ModelUnavailable(f"Gemini request failed: {e}") from e
        finally:
            if uploaded is not None:
                try:
                    client.files.delete(name=uploaded.name)
                except Exception as e:
                    logger.warning("could not delete Gemini file %s: %s", uploaded.name, e)
