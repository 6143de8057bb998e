import uuid

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from reelpipe.db.base_class import Base


def _new_job_id() -> str:
    return uuid.uuid4().hex


class IngestionJob(Base):
    __tablename__ = "ingestion_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_job_id)

    # source (immutable after creation)
    source_url: Mapped[str] = mapped_column(Text, nullable=False)
    platform: Mapped[str] = mapped_column(String(16), nullable=False)  # tiktok|instagram|youtube|unknown
    video_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    title: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # pending|downloading|uploading|transcribing|completed|failed
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending", index=True)
    task_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # CDN relay
    cdn_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    asset_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # local copy of the downloaded bytes
    media_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_mime_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    media_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    source_media_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_media_headers_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON string: headers the source CDN expects

    # download outputs
    metrics_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")  # JSON string: {likes,views,...}
    details_json: Mapped[str | None] = mapped_column(Text, nullable=True)          # JSON string: {author,duration_seconds,...}

    # analysis outputs
    transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    components_json: Mapped[str | None] = mapped_column(Text, nullable=True)        # JSON string: {hook,bridge,nugget,call_to_action}
    content_metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON string
    analysis_method: Mapped[str | None] = mapped_column(String(32), nullable=True)

    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_kind: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())
