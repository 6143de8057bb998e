import json
import logging
from typing import Any

from sqlalchemy.orm import Session

from reelpipe.models.ingestion_job import IngestionJob
from reelpipe.services.analysis_parser import AnalysisResult
from reelpipe.services.errors import IngestError, InvalidTransition, NotFoundOrPrivate

logger = logging.getLogger(__name__)

PENDING = "pending"
DOWNLOADING = "downloading"
UPLOADING = "uploading"
TRANSCRIBING = "transcribing"
COMPLETED = "completed"
FAILED = "failed"

PIPELINE = (PENDING, DOWNLOADING, UPLOADING, TRANSCRIBING, COMPLETED)
TERMINAL = (COMPLETED, FAILED)


def can_transition(current: str, target: str) -> bool:
    """One step forward along PIPELINE, or FAILED from any non-terminal state."""
    if current in TERMINAL:
        return False
    if target == FAILED:
        return True
    if current not in PIPELINE or target not in PIPELINE:
        return False
    return PIPELINE.index(target) == PIPELINE.index(current) + 1


def _load(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except Exception:
        return default


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True)


def create_job(
    db: Session,
    source_url: str,
    platform: str,
    video_id: str | None = None,
    title: str | None = None,
) -> IngestionJob:
    job = IngestionJob(
        source_url=source_url,
        platform=platform,
        video_id=video_id,
        title=title,
        status=PENDING,
        metrics_json=_dump({"likes": 0, "views": 0, "comments": 0, "shares": 0, "saves": 0}),
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info("job %s created for %s (%s)", job.id, platform, source_url)
    return job


def get_job(db: Session, job_id: str) -> IngestionJob | None:
    return db.query(IngestionJob).filter(IngestionJob.id == job_id).one_or_none()


def require_job(db: Session, job_id: str) -> IngestionJob:
    job = get_job(db, job_id)
    if job is None:
        raise NotFoundOrPrivate(f"Job {job_id} not found")
    return job


def advance_status(db: Session, job_id: str, status: str) -> IngestionJob:
    job = require_job(db, job_id)
    if not can_transition(job.status, status):
        raise InvalidTransition(f"Job {job_id}: {job.status} -> {status} is not allowed")
    job.status = status
    db.commit()
    db.refresh(job)
    logger.info("job %s -> %s", job_id, status)
    return job


def mark_failed(db: Session, job_id: str, error: Exception | str) -> IngestionJob:
    """Record the failure and flip to FAILED. A job already terminal is left as is."""
    job = require_job(db, job_id)
    if job.status in TERMINAL:
        logger.warning("job %s already %s; not marking failed (%s)", job_id, job.status, error)
        return job

    job.status = FAILED
    job.error = str(error) or error.__class__.__name__
    job.error_kind = error.kind if isinstance(error, IngestError) else "internal_error"
    db.commit()
    db.refresh(job)
    logger.info("job %s -> failed (%s)", job_id, job.error_kind)
    return job


def record_download(
    db: Session,
    job_id: str,
    *,
    video_id: str | None,
    metrics: dict[str, int],
    details: dict[str, Any],
) -> IngestionJob:
    job = require_job(db, job_id)
    job.video_id = video_id or job.video_id
    job.metrics_json = _dump(metrics)
    job.details_json = _dump(details)
    if not job.thumbnail_url and details.get("thumbnail_url"):
        job.thumbnail_url = details["thumbnail_url"]
    db.commit()
    db.refresh(job)
    return job


def record_media(
    db: Session,
    job_id: str,
    *,
    media_path: str | None,
    mime_type: str | None,
    size: int | None,
    source_media_url: str | None = None,
    source_media_headers: dict[str, str] | None = None,
) -> IngestionJob:
    job = require_job(db, job_id)
    job.media_path = media_path
    job.media_mime_type = mime_type
    job.media_size = size
    if source_media_url:
        job.source_media_url = source_media_url
        job.source_media_headers_json = _dump(source_media_headers) if source_media_headers else None
    db.commit()
    db.refresh(job)
    return job


def source_media_headers(job: IngestionJob) -> dict[str, str]:
    return _load(job.source_media_headers_json, {}) or {}


def record_cdn_asset(
    db: Session,
    job_id: str,
    *,
    cdn_url: str,
    asset_id: str,
    thumbnail_url: str | None = None,
) -> IngestionJob:
    job = require_job(db, job_id)
    job.cdn_url = cdn_url
    job.asset_id = asset_id
    if thumbnail_url:
        job.thumbnail_url = thumbnail_url
    db.commit()
    db.refresh(job)
    return job


def record_task(db: Session, job_id: str, task_id: str | None) -> IngestionJob:
    job = require_job(db, job_id)
    job.task_id = task_id
    db.commit()
    db.refresh(job)
    return job


def complete_analysis(db: Session, job_id: str, result: AnalysisResult) -> IngestionJob:
    """Transcript, components and content metadata land together with COMPLETED."""
    job = require_job(db, job_id)
    if not can_transition(job.status, COMPLETED):
        raise InvalidTransition(f"Job {job_id}: {job.status} -> {COMPLETED} is not allowed")

    job.transcript = result.transcript
    job.components_json = _dump(result.components.to_dict())
    job.content_metadata_json = _dump(result.content_metadata.to_dict())
    job.analysis_method = result.method
    job.status = COMPLETED
    db.commit()
    db.refresh(job)
    logger.info("job %s -> completed (method=%s, fallback=%s)", job_id, result.method, result.fallback)
    return job


def clear_media_path(db: Session, job_id: str) -> IngestionJob:
    job = require_job(db, job_id)
    job.media_path = None
    db.commit()
    db.refresh(job)
    return job


def job_to_dict(job: IngestionJob, media_url: str | None = None) -> dict[str, Any]:
    return {
        "job_id": job.id,
        "source_url": job.source_url,
        "title": job.title,
        "platform": job.platform,
        "video_id": job.video_id,
        "status": job.status,
        "task_id": job.task_id,
        "cdn_url": job.cdn_url,
        "asset_id": job.asset_id,
        "thumbnail_url": job.thumbnail_url,
        "media_url": media_url,
        "metrics": _load(job.metrics_json, {}),
        "details": _load(job.details_json, None),
        "transcript": job.transcript,
        "components": _load(job.components_json, None),
        "content_metadata": _load(job.content_metadata_json, None),
        "analysis_method": job.analysis_method,
        "error": job.error,
        "error_kind": job.error_kind,
        "created_at": job.created_at.isoformat() if job.created_at else None,
        "updated_at": job.updated_at.isoformat() if job.updated_at else None,
    }
