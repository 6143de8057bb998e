from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath

import httpx

from reelpipe.core.bunny_settings import BunnySettings, bunny_settings
from reelpipe.services.errors import CdnError, CdnNotConfigured

logger = logging.getLogger(__name__)

_GUID_RE = re.compile(r"/embed/[^/]+/([0-9a-fA-F-]{8,})")


@dataclass(frozen=True)
class CdnAsset:
    cdn_url: str
    asset_id: str
    thumbnail_url: str | None = None


def extract_asset_id(cdn_url: str | None) -> str | None:
    m = _GUID_RE.search(cdn_url or "")
    return m.group(1) if m else None


class BunnyStreamRelay:
    """
    Bunny Stream upload: create the video object, then PUT the bytes.

    One attempt per call. Every failure raises CdnError; the caller decides
    whether that matters (the orchestrator degrades instead of failing).
    """

    def __init__(
        self,
        settings: BunnySettings | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.settings = settings or bunny_settings
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.settings.library_id and self.settings.api_key)

    def _require_config(self) -> None:
        if not self.is_configured():
            raise CdnNotConfigured("Bunny Stream is not configured (BUNNY_STREAM_LIBRARY_ID / BUNNY_STREAM_API_KEY)")

    def _client(self) -> httpx.Client:
        return httpx.Client(
            transport=self._transport,
            headers={"AccessKey": self.settings.api_key or "", "Accept": "application/json"},
        )

    def _videos_url(self) -> str:
        base = self.settings.api_base.rstrip("/")
        return f"{base}/library/{self.settings.library_id}/videos"

    def playback_url(self, guid: str) -> str:
        return f"{self.settings.embed_base.rstrip('/')}/{self.settings.library_id}/{guid}"

    def thumbnail_url(self, guid: str) -> str | None:
        host = (self.settings.cdn_hostname or "").strip().strip("/")
        if not host:
            return None
        host = re.sub(r"^https?://", "", host)
        if not host.startswith("vz-"):
            host = f"vz-{host}"
        return f"https://{host}/{guid}/thumbnail.jpg"

    # ----------------------------
    # steps
    # ----------------------------

    def _create_video(self, client: httpx.Client, filename: str) -> str:
        title = PurePosixPath(filename).stem or filename
        try:
            resp = client.post(
                self._videos_url(),
                json={"title": title},
                timeout=self.settings.create_timeout_sec,
            )
        except httpx.HTTPError as e:
            raise CdnError(f"Bunny create video failed: {e}") from e

        if not resp.is_success:
            raise CdnError(f"Bunny create video failed (HTTP {resp.status_code}): {resp.text[:200]}")
        try:
            guid = (resp.json() or {}).get("guid")
        except ValueError:
            guid = None
        if not guid:
            raise CdnError("Bunny create video returned no guid")
        return str(guid)

    def _put_bytes(self, client: httpx.Client, guid: str, content) -> None:
        try:
            resp = client.put(
                f"{self._videos_url()}/{guid}",
                content=content,
                headers={"Content-Type": "application/octet-stream"},
                timeout=self.settings.upload_timeout_sec,
            )
        except httpx.HTTPError as e:
            raise CdnError(f"Bunny upload failed: {e}") from e
        if not resp.is_success:
            raise CdnError(f"Bunny upload failed (HTTP {resp.status_code}): {resp.text[:200]}")

    def _delete_orphan(self, client: httpx.Client, guid: str) -> None:
        try:
            client.delete(f"{self._videos_url()}/{guid}", timeout=self.settings.create_timeout_sec)
        except httpx.HTTPError as e:
            logger.warning("could not delete orphan Bunny video %s: %s", guid, e)

    def _asset(self, guid: str) -> CdnAsset:
        return CdnAsset(cdn_url=self.playback_url(guid), asset_id=guid, thumbnail_url=self.thumbnail_url(guid))

    # ----------------------------
    # public API
    # ----------------------------

    def upload(self, data: bytes, filename: str, mime_type: str = "video/mp4") -> CdnAsset:
        self._require_config()
        if not data:
            raise CdnError("Refusing to upload an empty file")

        with self._client() as client:
            guid = self._create_video(client, filename)
            try:
                self._put_bytes(client, guid, data)
            except CdnError:
                self._delete_orphan(client, guid)
                raise

        logger.info("uploaded %s (%s, %d bytes) to Bunny as %s", filename, mime_type, len(data), guid)
        return self._asset(guid)

    def upload_from_url(
        self,
        remote_url: str,
        filename: str,
        headers: dict[str, str] | None = None,
        timeout_sec: float = 60.0,
        min_bytes: int = 0,
    ) -> CdnAsset:
        """
        Stream remote_url straight into the upload without holding the whole file.

        A source body of min_bytes or less (empty, or an error page behind a
        200) raises CdnError and the half-made video is deleted.
        """
        self._require_config()

        with self._client() as client:
            guid = self._create_video(client, filename)
            sent = 0
            try:
                with httpx.Client(transport=self._transport, follow_redirects=True) as source:
                    with source.stream("GET", remote_url, headers=headers or None, timeout=timeout_sec) as src:
                        if not src.is_success:
                            raise CdnError(f"Source fetch failed (HTTP {src.status_code}) for {remote_url}")
                        declared = src.headers.get("content-length")
                        if declared and declared.isdigit() and int(declared) <= min_bytes:
                            raise CdnError(f"Source body too small ({declared} bytes) for {remote_url}")

                        def chunks():
                            nonlocal sent
                            for chunk in src.iter_bytes():
                                sent += len(chunk)
                                yield chunk

                        self._put_bytes(client, guid, chunks())
                if sent <= min_bytes:
                    raise CdnError(f"Source body too small ({sent} bytes) for {remote_url}")
            except httpx.HTTPError as e:
                self._delete_orphan(client, guid)
                raise CdnError(f"Source fetch failed for {remote_url}: {e}") from e
            except CdnError:
                self._delete_orphan(client, guid)
                raise

        logger.info("streamed %s (%d bytes) to Bunny as %s", filename, sent, guid)
        return self._asset(guid)
