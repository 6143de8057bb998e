from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any

import httpx

from reelpipe.core.platform_settings import PlatformSettings, platform_settings
from reelpipe.services.errors import (
    IngestError,
    ServiceUnavailable,
    from_transport_error,
    raise_for_upstream_status,
)
from reelpipe.services.platforms.detector import Platform

logger = logging.getLogger(__name__)

_HASHTAG_RE = re.compile(r"#([A-Za-z0-9_]+)")
MAX_HASHTAGS = 30


@dataclass(frozen=True)
class Rendition:
    url: str
    width: int | None = None
    height: int | None = None
    bitrate: int | None = None
    size_bytes: int | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def area(self) -> int | None:
        if self.width and self.height:
            return int(self.width) * int(self.height)
        return None


@dataclass
class EngagementMetrics:
    likes: int = 0
    views: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class VideoDetails:
    author: str | None = None
    duration_seconds: float | None = None
    description: str | None = None
    hashtags: list[str] = field(default_factory=list)
    thumbnail_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class VideoInfo:
    platform: Platform
    identifier: str
    renditions: list[Rendition]
    metrics: EngagementMetrics
    details: VideoDetails


@dataclass(frozen=True)
class MetadataRequest:
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    label: str = "primary"


# ----------------------------
# Payload helpers (shared by the adapters)
# ----------------------------

def dig(obj: Any, *path: Any) -> Any:
    """Walk nested dicts/lists; None on any miss."""
    cur = obj
    for key in path:
        if isinstance(key, int):
            if not isinstance(cur, list) or len(cur) <= key or key < -len(cur):
                return None
            cur = cur[key]
        else:
            if not isinstance(cur, dict):
                return None
            cur = cur.get(key)
        if cur is None:
            return None
    return cur


def first_present(obj: Any, *paths: tuple) -> Any:
    for path in paths:
        v = dig(obj, *path)
        if v is not None and v != "":
            return v
    return None


def to_int(value: Any) -> int:
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError):
        return 0


def to_opt_int(value: Any) -> int | None:
    try:
        v = int(float(value))
    except (TypeError, ValueError):
        return None
    return v if v > 0 else None


def to_opt_float(value: Any) -> float | None:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    return v if v > 0 else None


def extract_hashtags(*texts: str | None, limit: int = MAX_HASHTAGS) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for text in texts:
        for tag in _HASHTAG_RE.findall(text or ""):
            key = tag.lower()
            if key in seen:
                continue
            seen.add(key)
            out.append(tag)
            if len(out) >= limit:
                return out
    return out


def normalize_hashtags(values: Any, limit: int = MAX_HASHTAGS) -> list[str]:
    """
    Accepts ["#a", "b"], [{"hashtag_name": "a"}], "a, #b" and returns ["a", "b"].
    """
    if values is None:
        return []
    if isinstance(values, str):
        values = re.split(r"[\s,]+", values)
    if not isinstance(values, list):
        return []

    out: list[str] = []
    seen: set[str] = set()
    for v in values:
        if isinstance(v, dict):
            v = v.get("hashtag_name") or v.get("name") or v.get("title")
        if not isinstance(v, str):
            continue
        tag = v.strip().lstrip("#").strip()
        if not tag or tag.lower() in seen:
            continue
        seen.add(tag.lower())
        out.append(tag)
        if len(out) >= limit:
            break
    return out


def dedupe_renditions(items: list[Rendition]) -> list[Rendition]:
    seen: set[str] = set()
    out: list[Rendition] = []
    for r in items:
        if not r.url or r.url in seen:
            continue
        seen.add(r.url)
        out.append(r)
    return out


# ----------------------------
# Adapter interface
# ----------------------------

class PlatformAdapter:
    """
    One per platform: metadata fetch + rendition / metric / detail extraction.
    The Downloader only ever talks to this interface.
    """

    platform: Platform = Platform.UNKNOWN
    service_name: str = "platform"

    def __init__(self, settings: PlatformSettings | None = None) -> None:
        self.settings = settings or platform_settings

    # identifier ------------------------------------------------------------

    def resolve_identifier(self, client: httpx.Client, identifier: str) -> str:
        return identifier

    # metadata --------------------------------------------------------------

    def metadata_requests(self, identifier: str) -> list[MetadataRequest]:
        raise NotImplementedError

    def fetch_metadata(self, client: httpx.Client, identifier: str) -> dict[str, Any]:
        """
        Try each metadata endpoint in order. A payload without renditions only
        wins when no later endpoint does better. When every endpoint errors,
        the first (primary) endpoint's error is raised.
        """
        requests = self.metadata_requests(identifier)
        if not requests:
            raise ServiceUnavailable(f"{self.service_name} metadata API is not configured")

        first_error: IngestError | None = None
        empty_payload: dict[str, Any] | None = None

        for req in requests:
            try:
                payload = self._get_json(client, req)
            except IngestError as e:
                logger.warning("%s metadata endpoint %s failed: %s", self.service_name, req.label, e)
                if first_error is None:
                    first_error = e
                continue

            if self.extract_renditions(payload):
                return payload
            logger.warning("%s metadata endpoint %s returned no renditions", self.service_name, req.label)
            if empty_payload is None:
                empty_payload = payload

        if empty_payload is not None:
            return empty_payload
        if first_error is None:
            raise ServiceUnavailable(f"{self.service_name} has no metadata endpoints configured")
        raise first_error

    def _get_json(self, client: httpx.Client, req: MetadataRequest) -> dict[str, Any]:
        try:
            resp = client.get(
                req.url,
                headers=req.headers or None,
                params=req.params or None,
                timeout=self.settings.metadata_timeout_sec,
            )
        except httpx.HTTPError as e:
            raise from_transport_error(e, self.service_name) from e

        raise_for_upstream_status(resp, self.service_name)

        try:
            data = resp.json()
        except ValueError as e:
            raise ServiceUnavailable(f"{self.service_name} returned a non-JSON response") from e
        if not isinstance(data, dict):
            raise ServiceUnavailable(f"{self.service_name} returned an unexpected payload")
        return data

    # extraction ------------------------------------------------------------

    def extract_renditions(self, payload: dict[str, Any]) -> list[Rendition]:
        raise NotImplementedError

    def extract_metrics(self, payload: dict[str, Any]) -> EngagementMetrics:
        return EngagementMetrics()

    def extract_details(self, payload: dict[str, Any]) -> VideoDetails:
        return VideoDetails()

    def build_info(self, identifier: str, payload: dict[str, Any]) -> VideoInfo:
        return VideoInfo(
            platform=self.platform,
            identifier=identifier,
            renditions=self.extract_renditions(payload),
            metrics=self.extract_metrics(payload),
            details=self.extract_details(payload),
        )
