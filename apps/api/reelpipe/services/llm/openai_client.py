from __future__ import annotations

import logging

from reelpipe.core.config import Settings, settings as app_settings
from reelpipe.services.errors import ModelUnavailable
from reelpipe.services.llm.base import VideoRef

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You analyze transcripts of short-form social videos. "
    "Output MUST be valid JSON only. No markdown, no commentary."
)


class OpenAIClient:
    """
    Text-only provider for the split-mode sub-calls (script breakdown, metadata).
    Tries the Responses API first; falls back to Chat Completions.
    """

    name = "openai"

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or app_settings
        self._client = None

    def _build_openai_client(self):
        if self._client is not None:
            return self._client
        if not self.settings.openai_api_key:
            raise ModelUnavailable("OPENAI_API_KEY is missing")

        # OpenAI SDK v1+
        from openai import OpenAI  # type: ignore

        self._client = OpenAI(
            api_key=self.settings.openai_api_key,
            timeout=self.settings.openai_timeout_sec,
            max_retries=self.settings.openai_max_retries,
        )
        return self._client

    def _call(self, client, prompt: str) -> str:
        # Attempt 1: Responses API (newer pattern)
        try:
            resp = client.responses.create(
                model=self.settings.openai_model,
                input=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            )
            raw_text = getattr(resp, "output_text", None) or ""
            if raw_text.strip():
                return raw_text.strip()
        except TypeError:
            # SDK without the Responses API signature
            pass
        except Exception as e:
            # Any other error -> fall through to chat API attempt
            logger.warning("openai responses API failed, trying chat completions: %s", e)

        # Attempt 2: ChatCompletions API (widely supported)
        chat = client.chat.completions.create(
            model=self.settings.openai_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
        )
        return (chat.choices[0].message.content or "").strip()

    def generate(self, prompt: str, media: VideoRef | None = None) -> str:
        if media is not None:
            raise ModelUnavailable("OpenAI provider is text-only; video input needs Gemini")

        client = self._build_openai_client()
        try:
            text = self._call(client, prompt)
        except ModelUnavailable:
            raise
        except Exception as e:
            raise ModelUnavailable(f"OpenAI request failed: {e}") from e

        logger.info("openai %s returned %d chars", self.settings.openai_model, len(text))
        return text
