"""
Tolerant parsing of generative-model output.

The model is an untrusted text generator. Parsing never raises; it walks a
fixed ladder and stops at the first rung that yields a JSON object:

    1. strip_code_fences   ```json ... ```  ->  inner text
    2. slice_braces        first "{" .. last "}"
    3. load_json_object    json.loads, objects only
    4. validate_*          allow-lists for categorical fields, defaults for the rest
    5. placeholders        explicit "Unable to extract ..." strings, never null

If no rung produces an object, the whole raw text becomes the transcript.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any

from reelpipe.services.llm.prompts import CONTENT_CATEGORIES, PLATFORM_LABELS
from reelpipe.services.platforms.base import VideoDetails, normalize_hashtags
from reelpipe.services.platforms.detector import Platform

logger = logging.getLogger(__name__)

PLACEHOLDERS = {
    "hook": "Unable to extract hook from video content",
    "bridge": "Unable to extract bridge from video content",
    "nugget": "Unable to extract golden nugget from video content",
    "call_to_action": "Unable to extract WTA from video content",
}
UNKNOWN_AUTHOR = "Unknown"
NO_DESCRIPTION = "No description available"

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)
_OPEN_FENCE_RE = re.compile(r"^\s*```(?:json|JSON)?\s*")


@dataclass
class ScriptComponents:
    hook: str = PLACEHOLDERS["hook"]
    bridge: str = PLACEHOLDERS["bridge"]
    nugget: str = PLACEHOLDERS["nugget"]
    call_to_action: str = PLACEHOLDERS["call_to_action"]

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class ContentMetadata:
    platform: str = "Unknown"
    author: str = UNKNOWN_AUTHOR
    description: str = NO_DESCRIPTION
    category: str = "other"
    hashtags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AnalysisResult:
    transcript: str
    components: ScriptComponents
    content_metadata: ContentMetadata
    method: str
    fallback: bool = False


def is_placeholder(text: str | None) -> bool:
    return not text or text in PLACEHOLDERS.values()


def platform_label(platform: Platform | str | None) -> str:
    if isinstance(platform, Platform):
        return platform.label
    s = (platform or "").strip().lower()
    for label in PLATFORM_LABELS:
        if label.lower() == s:
            return label
    return "Unknown"


# ----------------------------
# Ladder rungs
# ----------------------------

def strip_code_fences(text: str | None) -> str:
    s = (text or "").strip()
    m = _FENCE_RE.search(s)
    if m:
        return m.group(1).strip()
    # unterminated opening fence (truncated output)
    return _OPEN_FENCE_RE.sub("", s).strip()


def slice_braces(text: str | None) -> str:
    s = text or ""
    start = s.find("{")
    end = s.rfind("}")
    if start >= 0 and end > start:
        return s[start : end + 1]
    return s


def load_json_object(text: str | None) -> dict[str, Any] | None:
    try:
        data = json.loads(text or "")
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def extract_json_object(raw: str | None) -> dict[str, Any] | None:
    """Rungs 1-3. Fenced and unfenced responses parse identically."""
    text = strip_code_fences(raw)
    obj = load_json_object(text)
    if obj is not None:
        return obj
    return load_json_object(slice_braces(text))


# ----------------------------
# Field validation
# ----------------------------

def _clean_str(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def validate_components(data: Any) -> ScriptComponents:
    data = data if isinstance(data, dict) else {}
    cta = (
        _clean_str(data.get("call_to_action"))
        or _clean_str(data.get("callToAction"))
        or _clean_str(data.get("wta"))
        or _clean_str(data.get("cta"))
    )
    return ScriptComponents(
        hook=_clean_str(data.get("hook")) or PLACEHOLDERS["hook"],
        bridge=_clean_str(data.get("bridge")) or PLACEHOLDERS["bridge"],
        nugget=_clean_str(data.get("nugget")) or _clean_str(data.get("golden_nugget")) or PLACEHOLDERS["nugget"],
        call_to_action=cta or PLACEHOLDERS["call_to_action"],
    )


def validate_category(value: Any, default_category: str = "other") -> str:
    default = default_category if default_category in CONTENT_CATEGORIES else "other"
    s = _clean_str(value).lower()
    return s if s in CONTENT_CATEGORIES else default


def validate_content_metadata(
    data: Any,
    platform_hint: Platform | str | None = None,
    details: VideoDetails | None = None,
    default_category: str = "other",
) -> ContentMetadata:
    """
    Platform facts win over model guesses: a known platform hint and the
    platform-reported author are kept even when the model says otherwise.
    """
    data = data if isinstance(data, dict) else {}
    details = details or VideoDetails()

    known = platform_label(platform_hint)
    if known != "Unknown":
        platform = known
    else:
        platform = platform_label(_clean_str(data.get("platform")))

    model_author = _clean_str(data.get("author"))
    if model_author.lower() == "unknown":
        model_author = ""
    author = (details.author or "").strip() or model_author or UNKNOWN_AUTHOR

    description = _clean_str(data.get("description")) or (details.description or "").strip() or NO_DESCRIPTION

    hashtags = normalize_hashtags(data.get("hashtags")) or list(details.hashtags or [])

    return ContentMetadata(
        platform=platform,
        author=author,
        description=description,
        category=validate_category(data.get("source", data.get("category")), default_category),
        hashtags=hashtags,
    )


# ----------------------------
# Entry points
# ----------------------------

def parse_analysis(
    raw: str | None,
    platform_hint: Platform | str | None = None,
    details: VideoDetails | None = None,
    default_category: str = "other",
    method: str = "inline",
) -> AnalysisResult:
    obj = extract_json_object(raw)
    if obj is None:
        logger.warning("model output was not JSON (%d chars); using placeholder analysis", len(raw or ""))
        return AnalysisResult(
            transcript=(raw or "").strip(),
            components=ScriptComponents(),
            content_metadata=validate_content_metadata({}, platform_hint, details, default_category),
            method="fallback",
            fallback=True,
        )

    # some models flatten the components next to the transcript
    components_src = obj.get("components")
    if not isinstance(components_src, dict):
        components_src = obj

    metadata_src = obj.get("contentMetadata")
    if not isinstance(metadata_src, dict):
        metadata_src = obj.get("content_metadata") if isinstance(obj.get("content_metadata"), dict) else {}

    transcript = obj.get("transcript")
    if not isinstance(transcript, str):
        transcript = ""

    return AnalysisResult(
        transcript=transcript.strip(),
        components=validate_components(components_src),
        content_metadata=validate_content_metadata(metadata_src, platform_hint, details, default_category),
        method=method,
    )


def parse_components(raw: str | None) -> ScriptComponents:
    obj = extract_json_object(raw)
    if obj is None:
        logger.warning("script breakdown was not JSON; using placeholders")
        return ScriptComponents()
    src = obj.get("components") if isinstance(obj.get("components"), dict) else obj
    return validate_components(src)


def parse_content_metadata(
    raw: str | None,
    platform_hint: Platform | str | None = None,
    details: VideoDetails | None = None,
    default_category: str = "other",
) -> ContentMetadata:
    obj = extract_json_object(raw)
    if obj is None:
        logger.warning("metadata extraction was not JSON; using defaults")
        obj = {}
    elif isinstance(obj.get("contentMetadata"), dict):
        obj = obj["contentMetadata"]
    return validate_content_metadata(obj, platform_hint, details, default_category)
