from __future__ import annotations

import logging

from reelpipe.db.session import SessionLocal
from reelpipe.services.ingestion import get_ingestion_service
from reelpipe.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="ingest.analyze_video")
def analyze_video(job_id: str) -> dict:
    """
    Background stage: Transcribing -> Completed | Failed.
    Failures are recorded on the job by the service; nothing is retried.
    """
    db = SessionLocal()
    try:
        job = get_ingestion_service().run_analysis(db, job_id)
        return {"ok": job.status == "completed", "job_id": job_id, "status": job.status}
    finally:
        db.close()
