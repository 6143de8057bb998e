from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from reelpipe.db.session import get_db
from reelpipe.services.errors import IngestError
from reelpipe.services.ingestion import get_ingestion_service
from reelpipe.services.jobs import get_job, job_to_dict

router = APIRouter(prefix="/ingest", tags=["ingest"])


class IngestRequest(BaseModel):
    url: str
    title: str | None = None


class IngestResponse(BaseModel):
    ok: bool
    accepted: bool
    job_id: str
    task_id: str | None = None
    platform: str
    status: str
    cdn_url: str | None = None
    media_url: str | None = None


class JobGetResponse(BaseModel):
    ok: bool
    job_id: str
    source_url: str
    title: str | None = None
    platform: str
    video_id: str | None = None
    status: str
    task_id: str | None = None
    cdn_url: str | None = None
    asset_id: str | None = None
    thumbnail_url: str | None = None
    media_url: str | None = None
    metrics: dict[str, int]
    details: dict[str, Any] | None = None
    transcript: str | None = None
    components: dict[str, str] | None = None
    content_metadata: dict[str, Any] | None = None
    analysis_method: str | None = None
    error: str | None = None
    error_kind: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


def _http_error(e: IngestError, job_id: str | None = None) -> HTTPException:
    detail: dict[str, Any] = {"error": e.kind, "message": str(e)}
    if job_id:
        detail["job_id"] = job_id
    return HTTPException(status_code=e.status_code, detail=detail)


def _media_url(job) -> str | None:
    if get_ingestion_service().media_available(job):
        return f"/ingest/{job.id}/media"
    return None


@router.post("", response_model=IngestResponse)
def ingest_video(req: IngestRequest, db: Session = Depends(get_db)) -> IngestResponse:
    try:
        job = get_ingestion_service().start(db, req.url, title=req.title)
    except IngestError as e:
        # the job (if one was created) is already marked failed
        raise _http_error(e, job_id=getattr(e, "job_id", None))

    return IngestResponse(
        ok=True,
        accepted=True,
        job_id=job.id,
        task_id=job.task_id,
        platform=job.platform,
        status=job.status,
        cdn_url=job.cdn_url,
        media_url=_media_url(job),
    )


@router.get("/{job_id}", response_model=JobGetResponse)
def get_ingest_job(job_id: str, db: Session = Depends(get_db)) -> JobGetResponse:
    job = get_job(db, job_id)
    if not job:
        raise HTTPException(status_code=404, detail={"error": "not_found", "message": f"Job {job_id} not found"})

    return JobGetResponse(ok=True, **job_to_dict(job, media_url=_media_url(job)))


@router.get("/{job_id}/media")
def get_ingest_media(job_id: str, db: Session = Depends(get_db)):
    """Raw downloaded bytes, kept for callers when there is no CDN copy."""
    job = get_job(db, job_id)
    if not job:
        raise HTTPException(status_code=404, detail={"error": "not_found", "message": f"Job {job_id} not found"})
    if not get_ingestion_service().media_available(job):
        raise HTTPException(status_code=404, detail={"error": "not_found", "message": "No local media kept for this job"})

    return FileResponse(
        job.media_path,
        media_type=job.media_mime_type or "video/mp4",
        filename=f"{job.platform}-{job.video_id or job.id}.mp4",
    )
