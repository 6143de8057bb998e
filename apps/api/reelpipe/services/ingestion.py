from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable

from sqlalchemy.orm import Session

from reelpipe.core.config import Settings, settings as app_settings
from reelpipe.models.ingestion_job import IngestionJob
from reelpipe.services import jobs
from reelpipe.services.analyzer import Analyzer
from reelpipe.services.cdn import BunnyStreamRelay, CdnAsset
from reelpipe.services.downloader import Downloader, MediaFile
from reelpipe.services.errors import (
    CdnError,
    CdnNotConfigured,
    IngestError,
    InvalidInput,
    NotFoundOrPrivate,
    ServiceUnavailable,
)
from reelpipe.services.llm.base import VideoRef
from reelpipe.services.media_store import LocalMediaStore
from reelpipe.services.platforms.base import VideoDetails, VideoInfo
from reelpipe.services.platforms.detector import Platform, detect_platform
from reelpipe.services.platforms.youtube import build_video_url

logger = logging.getLogger(__name__)

_HTTP_URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)

Dispatch = Callable[[str, str], Any]


def _details_from_json(data: dict[str, Any] | None) -> VideoDetails:
    data = data or {}
    return VideoDetails(
        author=data.get("author"),
        duration_seconds=data.get("duration_seconds"),
        description=data.get("description"),
        hashtags=list(data.get("hashtags") or []),
        thumbnail_url=data.get("thumbnail_url"),
    )


class IngestionService:
    """
    Sequences one ingestion:

      request thread:  Pending -> Downloading -> Uploading -> Transcribing (respond)
      worker:          Transcribing -> Completed | Failed

    Download and local storage failures fail the job and reach the caller.
    CDN failures are logged and absorbed; the local bytes stay available
    instead.
    """

    def __init__(
        self,
        downloader: Downloader,
        relay: BunnyStreamRelay,
        analyzer: Analyzer,
        media_store: LocalMediaStore,
        dispatch: Dispatch,
        settings: Settings | None = None,
    ) -> None:
        self.downloader = downloader
        self.relay = relay
        self.analyzer = analyzer
        self.media_store = media_store
        self.dispatch = dispatch
        self.settings = settings or app_settings

    # ----------------------------
    # helpers
    # ----------------------------

    def media_available(self, job: IngestionJob) -> bool:
        return self.media_store.exists(job.media_path)

    def _streams_to_cdn(self, platform: Platform) -> bool:
        return platform.value in self.settings.stream_to_cdn_platforms and self.relay.is_configured()

    def _fail(self, db: Session, job_id: str, error: Exception) -> None:
        jobs.mark_failed(db, job_id, error)
        # lets the HTTP layer point the caller at the failed job
        setattr(error, "job_id", job_id)

    def _save_media(self, db: Session, job_id: str, media: MediaFile) -> None:
        try:
            path = self.media_store.save(job_id, media.filename, media.data)
        except OSError as e:
            raise ServiceUnavailable(f"Could not store downloaded media locally: {e}") from e
        jobs.record_media(
            db,
            job_id,
            media_path=path,
            mime_type=media.mime_type,
            size=media.size,
            source_media_url=media.source_url,
        )

    def _relay_bytes(self, job_id: str, media: MediaFile) -> CdnAsset | None:
        try:
            return self.relay.upload(media.data, media.filename, media.mime_type)
        except CdnNotConfigured as e:
            logger.info("job %s: CDN relay skipped: %s", job_id, e)
        except CdnError as e:
            logger.warning("job %s: CDN relay failed, keeping local bytes: %s", job_id, e)
        return None

    def _relay_stream(self, db: Session, job_id: str, info: VideoInfo) -> tuple[CdnAsset | None, MediaFile | None]:
        """
        Stream the smallest rendition URL -> CDN. If that fails the bytes are
        downloaded after all, so a local copy exists for analysis.
        """
        rendition = info.renditions[0]
        filename = f"{info.platform.value}-{info.identifier}.mp4"
        try:
            asset = self.relay.upload_from_url(
                rendition.url,
                filename,
                headers=rendition.headers,
                timeout_sec=self.downloader.settings.rendition_timeout_sec,
                min_bytes=self.downloader.settings.min_video_bytes,
            )
        except CdnError as e:
            logger.warning("job %s: streaming relay failed, downloading bytes instead: %s", job_id, e)
        else:
            jobs.record_media(
                db,
                job_id,
                media_path=None,
                mime_type="video/mp4",
                size=None,
                source_media_url=rendition.url,
                source_media_headers=rendition.headers,
            )
            return asset, None

        return None, self.downloader.download_renditions(info)

    # ----------------------------
    # synchronous path
    # ----------------------------

    def validate_url(self, url: str | None):
        url = (url or "").strip()
        if not url:
            raise InvalidInput("url is required")
        if not _HTTP_URL_RE.match(url):
            raise InvalidInput("url must be an http(s) URL")
        info = detect_platform(url)
        if not info.is_known:
            raise InvalidInput("Unsupported or unrecognized video URL (expected TikTok, Instagram or YouTube)")
        return url, info

    def start(self, db: Session, url: str, title: str | None = None) -> IngestionJob:
        url, detected = self.validate_url(url)

        job = jobs.create_job(
            db,
            source_url=url,
            platform=detected.platform.value,
            video_id=detected.identifier,
            title=(title or "").strip() or None,
        )
        job_id = job.id

        # Downloading
        jobs.advance_status(db, job_id, jobs.DOWNLOADING)
        stream = self._streams_to_cdn(detected.platform)
        media: MediaFile | None = None
        try:
            if stream:
                info = self.downloader.resolve(detected.platform, detected.identifier)
            else:
                result = self.downloader.fetch(detected.platform, detected.identifier)
                info, media = result.info, result.media
        except IngestError as e:
            logger.warning("job %s: download failed (%s): %s", job_id, e.kind, e)
            self._fail(db, job_id, e)
            raise
        except Exception as e:
            logger.exception("job %s: unexpected download error", job_id)
            self._fail(db, job_id, e)
            raise

        try:
            self._store_and_relay(db, job_id, info, media, stream)
        except IngestError as e:
            logger.warning("job %s: storing media failed (%s): %s", job_id, e.kind, e)
            self._fail(db, job_id, e)
            raise
        except Exception as e:
            logger.exception("job %s: unexpected error after download", job_id)
            self._fail(db, job_id, e)
            raise

        self._dispatch(db, job_id)

        job = jobs.require_job(db, job_id)
        db.refresh(job)
        return job

    def _store_and_relay(
        self,
        db: Session,
        job_id: str,
        info: VideoInfo,
        media: MediaFile | None,
        stream: bool,
    ) -> None:
        """Record the download, keep a local copy and hand the media to the CDN."""
        jobs.record_download(
            db,
            job_id,
            video_id=info.identifier,
            metrics=info.metrics.to_dict(),
            details=info.details.to_dict(),
        )

        # Uploading
        jobs.advance_status(db, job_id, jobs.UPLOADING)
        asset: CdnAsset | None = None
        if stream:
            asset, media = self._relay_stream(db, job_id, info)

        if media is not None:
            self._save_media(db, job_id, media)
            if asset is None and not stream:
                asset = self._relay_bytes(job_id, media)

        if asset is not None:
            jobs.record_cdn_asset(
                db,
                job_id,
                cdn_url=asset.cdn_url,
                asset_id=asset.asset_id,
                thumbnail_url=asset.thumbnail_url,
            )

        # Transcribing (the caller gets its response from here on)
        jobs.advance_status(db, job_id, jobs.TRANSCRIBING)

    def _dispatch(self, db: Session, job_id: str) -> None:
        from reelpipe.services.job_dispatch import new_task_id

        task_id = new_task_id()
        jobs.record_task(db, job_id, task_id)
        try:
            self.dispatch(job_id, task_id)
        except Exception as e:
            err = ServiceUnavailable(f"Could not queue analysis: {e}")
            logger.error("job %s: %s", job_id, err)
            self._fail(db, job_id, err)
            raise err from e

    # ----------------------------
    # background stage
    # ----------------------------

    def _video_ref(self, job: IngestionJob) -> VideoRef:
        mime = job.media_mime_type or "video/mp4"
        if self.media_store.exists(job.media_path):
            return VideoRef(
                data=self.media_store.load(job.media_path),
                mime_type=mime,
                filename=Path(job.media_path).name,
            )
        if job.source_media_url:
            return VideoRef(url=job.source_media_url, mime_type=mime, headers=jobs.source_media_headers(job))
        if job.platform == Platform.YOUTUBE.value and job.video_id:
            return VideoRef(url=build_video_url(job.video_id), mime_type=mime)
        raise ServiceUnavailable("No media available to analyze (local copy missing and no source URL)")

    def run_analysis(self, db: Session, job_id: str) -> IngestionJob:
        job = jobs.get_job(db, job_id)
        if job is None:
            raise NotFoundOrPrivate(f"Job {job_id} not found")
        db.refresh(job)
        if job.status != jobs.TRANSCRIBING:
            logger.info("job %s is %s, not transcribing; skipping analysis", job_id, job.status)
            return job

        try:
            ref = self._video_ref(job)
            details = _details_from_json(jobs.job_to_dict(job)["details"])
            result = self.analyzer.analyze(ref, platform_hint=job.platform, details=details)
            job = jobs.complete_analysis(db, job_id, result)
        except IngestError as e:
            logger.error("job %s: analysis failed (%s): %s", job_id, e.kind, e, exc_info=True)
            return jobs.mark_failed(db, job_id, e)
        except Exception as e:
            logger.exception("job %s: unexpected analysis error", job_id)
            jobs.mark_failed(db, job_id, e)
            raise

        if job.cdn_url and job.media_path and not self.settings.keep_media_after_upload:
            self.media_store.delete(job_id)
            job = jobs.clear_media_path(db, job_id)
        return job


# ----------------------------
# process-wide instance
# ----------------------------

_SERVICE: IngestionService | None = None


def build_ingestion_service(settings: Settings | None = None) -> IngestionService:
    from reelpipe.services.job_dispatch import dispatch_analysis
    from reelpipe.services.llm.gemini_client import GeminiClient
    from reelpipe.services.llm.openai_client import OpenAIClient

    s = settings or app_settings
    media_client = GeminiClient(s)
    text_client = OpenAIClient(s) if s.analysis_text_provider == "openai" else media_client

    return IngestionService(
        downloader=Downloader(),
        relay=BunnyStreamRelay(),
        analyzer=Analyzer(media_client, text_client, settings=s),
        media_store=LocalMediaStore(s.media_dir),
        dispatch=lambda job_id, task_id: dispatch_analysis(job_id, task_id=task_id),
        settings=s,
    )


def get_ingestion_service() -> IngestionService:
    """
    Keep a single composed service per process (API worker or Celery worker).
    """
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = build_ingestion_service()
    return _SERVICE


def set_ingestion_service(service: IngestionService | None) -> None:
    global _SERVICE
    _SERVICE = service
