from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import httpx
from cachetools import TTLCache

from reelpipe.core.platform_settings import PlatformSettings, platform_settings
from reelpipe.services.cache import metadata_cache
from reelpipe.services.errors import DownloadFailed, InvalidInput, NotFoundOrPrivate
from reelpipe.services.platforms import Platform, PlatformAdapter, default_adapters
from reelpipe.services.platforms.base import Rendition, VideoInfo

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "video/mp4"


@dataclass
class MediaFile:
    data: bytes
    mime_type: str
    size: int
    filename: str
    source_url: str | None = None


@dataclass
class DownloadResult:
    media: MediaFile
    info: VideoInfo


def order_smallest_first(renditions: list[Rendition]) -> list[Rendition]:
    """
    Smallest / fastest candidate first.

    Uses the first size hint any rendition carries (bytes, then pixel area,
    then bit rate); renditions missing that hint keep their relative order
    at the end. With no hints at all the list is reversed, since platform
    APIs list best quality first.
    """
    if not renditions:
        return []

    for hint in ("size_bytes", "area", "bitrate"):
        if any(getattr(r, hint) for r in renditions):
            known = [r for r in renditions if getattr(r, hint)]
            unknown = [r for r in renditions if not getattr(r, hint)]
            known.sort(key=lambda r: getattr(r, hint))
            return known + unknown

    return list(reversed(renditions))


def _mime_type(resp: httpx.Response) -> str:
    ctype = (resp.headers.get("content-type") or "").split(";")[0].strip().lower()
    if ctype.startswith("video/") or ctype.startswith("audio/"):
        return ctype
    return DEFAULT_MIME_TYPE


class Downloader:
    """
    fetch(platform, identifier) -> bytes + mime type + size.

    Owns its HTTP transport and its metadata cache; both are injectable so
    tests can run against httpx.MockTransport and a fake clock.
    """

    def __init__(
        self,
        adapters: dict[Platform, PlatformAdapter] | None = None,
        *,
        settings: PlatformSettings | None = None,
        cache: TTLCache | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.settings = settings or platform_settings
        self.adapters = adapters if adapters is not None else default_adapters(self.settings)
        self.cache = cache if cache is not None else metadata_cache(self.settings)
        # cachetools caches are not thread-safe
        self._cache_lock = threading.Lock()
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            transport=self._transport,
            headers={"User-Agent": self.settings.user_agent},
            follow_redirects=True,
        )

    def adapter_for(self, platform: Platform | str) -> PlatformAdapter:
        try:
            adapter = self.adapters.get(Platform(platform))
        except ValueError:
            adapter = None
        if adapter is None:
            raise InvalidInput(f"Unsupported platform: {platform}")
        return adapter

    # ----------------------------
    # metadata
    # ----------------------------

    def resolve(self, platform: Platform | str, identifier: str) -> VideoInfo:
        adapter = self.adapter_for(platform)
        with self._client() as client:
            return self._resolve(client, adapter, identifier)

    def _resolve(self, client: httpx.Client, adapter: PlatformAdapter, identifier: str) -> VideoInfo:
        resolved_id = adapter.resolve_identifier(client, identifier)
        key = (adapter.platform.value, resolved_id)

        with self._cache_lock:
            payload = self.cache.get(key)
        if payload is None:
            payload = adapter.fetch_metadata(client, resolved_id)
            with self._cache_lock:
                self.cache[key] = payload
        else:
            logger.info("metadata cache hit for %s:%s", *key)

        info = adapter.build_info(resolved_id, payload)
        if not info.renditions:
            raise NotFoundOrPrivate(
                f"{adapter.service_name} returned no downloadable video for {resolved_id} "
                "(private, deleted or not a video)"
            )
        info.renditions = order_smallest_first(info.renditions)
        return info

    # ----------------------------
    # binaries
    # ----------------------------

    def download_renditions(self, info: VideoInfo) -> MediaFile:
        with self._client() as client:
            return self._download(client, info)

    def _download(self, client: httpx.Client, info: VideoInfo) -> MediaFile:
        filename = f"{info.platform.value}-{info.identifier}.mp4"
        min_bytes = self.settings.min_video_bytes
        total = len(info.renditions)

        for i, rendition in enumerate(info.renditions, start=1):
            try:
                resp = client.get(
                    rendition.url,
                    headers=rendition.headers or None,
                    timeout=self.settings.rendition_timeout_sec,
                )
            except httpx.HTTPError as e:
                logger.warning("rendition %d/%d for %s failed: %s", i, total, filename, e)
                continue

            if not resp.is_success:
                logger.warning("rendition %d/%d for %s returned HTTP %s", i, total, filename, resp.status_code)
                continue

            data = resp.content
            if len(data) <= min_bytes:
                logger.warning("rendition %d/%d for %s too small (%d bytes)", i, total, filename, len(data))
                continue

            logger.info("downloaded %s from rendition %d/%d (%d bytes)", filename, i, total, len(data))
            return MediaFile(
                data=data,
                mime_type=_mime_type(resp),
                size=len(data),
                filename=filename,
                source_url=rendition.url,
            )

        raise DownloadFailed(f"All {total} renditions failed to download for {info.platform.label} {info.identifier}")

    def fetch(self, platform: Platform | str, identifier: str) -> DownloadResult:
        adapter = self.adapter_for(platform)
        with self._client() as client:
            info = self._resolve(client, adapter, identifier)
            media = self._download(client, info)
        return DownloadResult(media=media, info=info)
