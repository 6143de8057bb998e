from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from reelpipe.services.platforms.base import (
    EngagementMetrics,
    MetadataRequest,
    PlatformAdapter,
    Rendition,
    VideoDetails,
    dedupe_renditions,
    dig,
    extract_hashtags,
    first_present,
    normalize_hashtags,
    to_int,
    to_opt_float,
    to_opt_int,
)
from reelpipe.services.platforms.detector import SHORT_LINK_PREFIX, Platform

logger = logging.getLogger(__name__)

_VIDEO_ID_RE = re.compile(r"/(?:video|v)/(\d+)")

_CDN_HEADERS = {"Referer": "https://www.tiktok.com/"}


def _aweme(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Known shapes:
      {data: {aweme_detail: {...}}}     (scraper API)
      {aweme_detail: {...}}
      {aweme_list: [{...}]}
      {itemInfo: {itemStruct: {...}}}   (web item detail)
    """
    for path in (
        ("data", "aweme_detail"),
        ("aweme_detail",),
        ("data", "aweme_list", 0),
        ("aweme_list", 0),
        ("itemInfo", "itemStruct"),
        ("data", "itemInfo", "itemStruct"),
    ):
        node = dig(payload, *path)
        if isinstance(node, dict):
            return node
    return {}


def _is_web_item(node: dict[str, Any]) -> bool:
    # web itemStruct uses camelCase + seconds; aweme uses snake_case + milliseconds
    return "stats" in node or "playAddr" in (node.get("video") or {})


class TikTokAdapter(PlatformAdapter):
    platform = Platform.TIKTOK
    service_name = "TikTok"

    def resolve_identifier(self, client: httpx.Client, identifier: str) -> str:
        """
        Short links (vm.tiktok.com/<code>) redirect to the canonical /video/<id> URL.
        On any failure the short code is kept and the metadata API gets a chance with it.
        """
        if not identifier.startswith(SHORT_LINK_PREFIX):
            return identifier

        code = identifier[len(SHORT_LINK_PREFIX):]
        short_url = f"https://vm.tiktok.com/{code}/"
        try:
            resp = client.head(
                short_url,
                follow_redirects=True,
                headers={"User-Agent": self.settings.user_agent},
                timeout=self.settings.shortlink_timeout_sec,
            )
        except httpx.HTTPError as e:
            logger.warning("TikTok short link %s did not resolve: %s", code, e)
            return code

        m = _VIDEO_ID_RE.search(str(resp.url))
        if m:
            return m.group(1)
        logger.warning("TikTok short link %s resolved to %s without a video id", code, resp.url)
        return code

    def metadata_requests(self, identifier: str) -> list[MetadataRequest]:
        key = self.settings.rapidapi_key
        if not key:
            return []
        host = self.settings.tiktok_rapidapi_host
        return [
            MetadataRequest(
                url=f"https://{host}/video/{identifier}",
                headers={"x-rapidapi-key": key, "x-rapidapi-host": host},
                label="rapidapi",
            )
        ]

    def extract_renditions(self, payload: dict[str, Any]) -> list[Rendition]:
        node = _aweme(payload)
        video = node.get("video") or {}
        out: list[Rendition] = []

        # bit_rate[] carries per-rendition size hints
        for br in video.get("bit_rate") or []:
            if not isinstance(br, dict):
                continue
            addr = br.get("play_addr") or {}
            urls = addr.get("url_list") or []
            if not urls:
                continue
            out.append(
                Rendition(
                    url=urls[0],
                    width=to_opt_int(addr.get("width")),
                    height=to_opt_int(addr.get("height")),
                    bitrate=to_opt_int(br.get("bit_rate")),
                    size_bytes=to_opt_int(addr.get("data_size")),
                    headers=dict(_CDN_HEADERS),
                )
            )

        # play_addr / download_addr list the same video best-first, no hints
        for key in ("play_addr", "download_addr", "play_addr_h264"):
            for url in dig(video, key, "url_list") or []:
                if isinstance(url, str):
                    out.append(Rendition(url=url, headers=dict(_CDN_HEADERS)))

        for key in ("playAddr", "downloadAddr"):
            url = video.get(key)
            if isinstance(url, str) and url:
                out.append(
                    Rendition(
                        url=url,
                        width=to_opt_int(video.get("width")),
                        height=to_opt_int(video.get("height")),
                        bitrate=to_opt_int(video.get("bitrate")),
                        headers=dict(_CDN_HEADERS),
                    )
                )

        return dedupe_renditions(out)

    def extract_metrics(self, payload: dict[str, Any]) -> EngagementMetrics:
        node = _aweme(payload)
        stats = node.get("statistics") or node.get("stats") or {}
        if not stats:
            logger.info("TikTok payload has no statistics block")
        return EngagementMetrics(
            likes=to_int(stats.get("digg_count", stats.get("diggCount"))),
            views=to_int(stats.get("play_count", stats.get("playCount"))),
            comments=to_int(stats.get("comment_count", stats.get("commentCount"))),
            shares=to_int(stats.get("share_count", stats.get("shareCount"))),
            saves=to_int(stats.get("collect_count", stats.get("collectCount"))),
        )

    def extract_details(self, payload: dict[str, Any]) -> VideoDetails:
        node = _aweme(payload)
        video = node.get("video") or {}
        description = node.get("desc") or ""

        duration = to_opt_float(video.get("duration") or node.get("duration"))
        if duration and not _is_web_item(node):
            duration = duration / 1000.0

        tags = normalize_hashtags(node.get("text_extra") or node.get("challenges"))
        if not tags:
            tags = extract_hashtags(description)

        thumb = first_present(
            video,
            ("dynamic_cover", "url_list", 0),
            ("cover", "url_list", 0),
            ("dynamicCover",),
            ("cover",),
        )

        return VideoDetails(
            author=first_present(node, ("author", "nickname"), ("author", "unique_id"), ("author", "uniqueId")),
            duration_seconds=duration,
            description=description,
            hashtags=tags,
            thumbnail_url=thumb if isinstance(thumb, str) else None,
        )
