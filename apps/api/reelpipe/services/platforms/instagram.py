from __future__ import annotations

from typing import Any

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
    to_int,
    to_opt_float,
    to_opt_int,
)
from reelpipe.services.platforms.detector import Platform


def _media(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Normalize the media node across the shapes the endpoints return:
      {video_versions: [...], ...}            scraper API, flat
      {data: {...}}                           scraper API, wrapped
      {items: [{...}]}                        public ?__a=1 (new)
      {graphql: {shortcode_media: {...}}}     public ?__a=1 (legacy)
      {media: {...}} / {video_url: "..."}
    """
    for path in (
        ("data", "items", 0),
        ("data", "xdt_shortcode_media"),
        ("data", "shortcode_media"),
        ("items", 0),
        ("graphql", "shortcode_media"),
        ("media",),
    ):
        node = dig(payload, *path)
        if isinstance(node, dict):
            return node

    data = payload.get("data")
    if isinstance(data, dict) and ("video_versions" in data or "video_url" in data or "code" in data):
        return data
    return payload


class InstagramAdapter(PlatformAdapter):
    platform = Platform.INSTAGRAM
    service_name = "Instagram"

    def metadata_requests(self, identifier: str) -> list[MetadataRequest]:
        browser_headers = {
            "User-Agent": self.settings.user_agent,
            "Accept": "application/json",
            "X-IG-App-ID": "936619743392459",
        }
        out: list[MetadataRequest] = []

        key = self.settings.rapidapi_key
        if key:
            host = self.settings.instagram_rapidapi_host
            out.append(
                MetadataRequest(
                    url=f"https://{host}/reel_by_shortcode",
                    headers={"x-rapidapi-key": key, "x-rapidapi-host": host},
                    params={"shortcode": identifier},
                    label="rapidapi",
                )
            )

        # Public scraping endpoints, tried in order when the API fails
        for kind in ("p", "reel"):
            out.append(
                MetadataRequest(
                    url=f"https://www.instagram.com/{kind}/{identifier}/",
                    headers=browser_headers,
                    params={"__a": "1", "__d": "dis"},
                    label=f"public-{kind}",
                )
            )
        return out

    def extract_renditions(self, payload: dict[str, Any]) -> list[Rendition]:
        media = _media(payload)
        out: list[Rendition] = []

        for v in media.get("video_versions") or []:
            if not isinstance(v, dict) or not v.get("url"):
                continue
            out.append(
                Rendition(
                    url=v["url"],
                    width=to_opt_int(v.get("width")),
                    height=to_opt_int(v.get("height")),
                    bitrate=to_opt_int(v.get("bandwidth")),
                )
            )

        # Single-URL shapes
        for path in (("video_url",), ("video", "url")):
            url = dig(media, *path)
            if isinstance(url, str) and url:
                out.append(
                    Rendition(
                        url=url,
                        width=to_opt_int(dig(media, "dimensions", "width")),
                        height=to_opt_int(dig(media, "dimensions", "height")),
                    )
                )

        if not out and isinstance(payload.get("video_url"), str):
            out.append(Rendition(url=payload["video_url"]))

        return dedupe_renditions(out)

    def extract_metrics(self, payload: dict[str, Any]) -> EngagementMetrics:
        m = _media(payload)
        return EngagementMetrics(
            likes=to_int(first_present(m, ("like_count",), ("edge_media_preview_like", "count"), ("edge_liked_by", "count"))),
            views=to_int(first_present(m, ("play_count",), ("video_play_count",), ("video_view_count",), ("view_count",))),
            comments=to_int(first_present(m, ("comment_count",), ("edge_media_to_comment", "count"), ("edge_media_to_parent_comment", "count"))),
            shares=to_int(first_present(m, ("reshare_count",), ("share_count",))),
            saves=to_int(first_present(m, ("save_count",), ("saved_count",), ("saved",), ("total_viewer_save_count",))),
        )

    def extract_details(self, payload: dict[str, Any]) -> VideoDetails:
        m = _media(payload)
        caption = first_present(
            m,
            ("caption", "text"),
            ("caption_text",),
            ("edge_media_to_caption", "edges", 0, "node", "text"),
        )
        if not isinstance(caption, str):
            caption = m.get("caption") if isinstance(m.get("caption"), str) else ""

        return VideoDetails(
            author=first_present(
                m,
                ("owner", "username"),
                ("user", "username"),
                ("username",),
                ("owner", "full_name"),
            ),
            duration_seconds=to_opt_float(first_present(m, ("video_duration",), ("duration",))),
            description=caption,
            hashtags=extract_hashtags(caption),
            thumbnail_url=first_present(
                m,
                ("image_versions2", "candidates", 0, "url"),
                ("image_versions2", "additional_candidates", "first_frame", "url"),
                ("display_url",),
                ("thumbnail_src",),
                ("thumbnail_url",),
            ),
        )
