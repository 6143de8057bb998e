from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from reelpipe.core.config import Settings, settings as app_settings
from reelpipe.services.analysis_parser import (
    AnalysisResult,
    ContentMetadata,
    ScriptComponents,
    parse_analysis,
    parse_components,
    parse_content_metadata,
    platform_label,
    validate_content_metadata,
)
from reelpipe.services.llm.base import ModelClient, VideoRef
from reelpipe.services.llm.prompts import (
    TRANSCRIBE_PROMPT,
    build_full_analysis_prompt,
    build_metadata_prompt,
    build_script_prompt,
)
from reelpipe.services.platforms.base import VideoDetails
from reelpipe.services.platforms.detector import Platform

logger = logging.getLogger(__name__)

MODES = ("single", "split")


class Analyzer:
    """
    analyze(video_ref) -> transcript + four-part breakdown + content metadata.

    single: one multimodal call returning one JSON object.
    split:  transcribe (multimodal), then script breakdown and metadata
            extraction run concurrently as text calls; either may fail
            without touching the other.

    A media call that cannot reach the model raises ModelUnavailable.
    Unparseable output never raises; it becomes a fallback result.
    """

    def __init__(
        self,
        media_client: ModelClient,
        text_client: ModelClient | None = None,
        *,
        mode: str | None = None,
        default_category: str | None = None,
        settings: Settings | None = None,
    ) -> None:
        s = settings or app_settings
        self.media_client = media_client
        self.text_client = text_client or media_client
        self.mode = (mode or s.analysis_mode or "single").lower()
        if self.mode not in MODES:
            raise ValueError(f"Unknown analysis mode: {self.mode}")
        self.default_category = default_category or s.default_content_category

    def analyze(
        self,
        video_ref: VideoRef,
        platform_hint: Platform | str | None = None,
        details: VideoDetails | None = None,
    ) -> AnalysisResult:
        if self.mode == "split":
            return self._analyze_split(video_ref, platform_hint, details)
        return self._analyze_single(video_ref, platform_hint, details)

    # ----------------------------
    # single call
    # ----------------------------

    def _context(self, platform_hint, details: VideoDetails | None) -> dict:
        d = details or VideoDetails()
        return {"author": d.author, "description": d.description, "hashtags": d.hashtags}

    def _analyze_single(self, video_ref, platform_hint, details) -> AnalysisResult:
        prompt = build_full_analysis_prompt(platform_label(platform_hint), **self._context(platform_hint, details))
        raw = self.media_client.generate(prompt, media=video_ref)
        method = getattr(self.media_client, "last_method", None) or ("inline" if video_ref.is_inline else "url")
        return parse_analysis(
            raw,
            platform_hint=platform_hint,
            details=details,
            default_category=self.default_category,
            method=method,
        )

    # ----------------------------
    # split calls
    # ----------------------------

    def _script_breakdown(self, transcript: str) -> ScriptComponents:
        raw = self.text_client.generate(build_script_prompt(transcript))
        return parse_components(raw)

    def _metadata(self, transcript: str, platform_hint, details) -> ContentMetadata:
        prompt = build_metadata_prompt(transcript, platform_label(platform_hint), **self._context(platform_hint, details))
        raw = self.text_client.generate(prompt)
        return parse_content_metadata(raw, platform_hint, details, self.default_category)

    def _analyze_split(self, video_ref, platform_hint, details) -> AnalysisResult:
        transcript = self.media_client.generate(TRANSCRIBE_PROMPT, media=video_ref).strip()

        if not transcript:
            logger.warning("transcription returned no speech; skipping script breakdown")
            return AnalysisResult(
                transcript="",
                components=ScriptComponents(),
                content_metadata=validate_content_metadata({}, platform_hint, details, self.default_category),
                method="split",
                fallback=True,
            )

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="analyze") as pool:
            script_future = pool.submit(self._script_breakdown, transcript)
            meta_future = pool.submit(self._metadata, transcript, platform_hint, details)

            fallback = False
            try:
                components = script_future.result()
            except Exception as e:
                logger.warning("script breakdown failed, using placeholders: %s", e)
                components = ScriptComponents()
                fallback = True

            try:
                metadata = meta_future.result()
            except Exception as e:
                logger.warning("metadata extraction failed, using defaults: %s", e)
                metadata = validate_content_metadata({}, platform_hint, details, self.default_category)
                fallback = True

        return AnalysisResult(
            transcript=transcript,
            components=components,
            content_metadata=metadata,
            method="split",
            fallback=fallback,
        )
