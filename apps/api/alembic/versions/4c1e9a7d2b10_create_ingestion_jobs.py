"""create ingestion_jobs

Revision ID: 4c1e9a7d2b10
Revises:
Create Date: 2026-10-19 10:12:31.402117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4c1e9a7d2b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "ingestion_jobs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),

        sa.Column("source_url", sa.Text(), nullable=False),
        sa.Column("platform", sa.String(length=16), nullable=False),
        sa.Column("video_id", sa.String(length=128), nullable=True),
        sa.Column("title", sa.String(length=512), nullable=True),

        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("task_id", sa.String(length=64), nullable=True),

        sa.Column("cdn_url", sa.Text(), nullable=True),
        sa.Column("asset_id", sa.String(length=64), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),

        sa.Column("media_path", sa.Text(), nullable=True),
        sa.Column("media_mime_type", sa.String(length=64), nullable=True),
        sa.Column("media_size", sa.Integer(), nullable=True),
        sa.Column("source_media_url", sa.Text(), nullable=True),
        sa.Column("source_media_headers_json", sa.Text(), nullable=True),

        sa.Column("metrics_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("details_json", sa.Text(), nullable=True),

        sa.Column("transcript", sa.Text(), nullable=True),
        sa.Column("components_json", sa.Text(), nullable=True),
        sa.Column("content_metadata_json", sa.Text(), nullable=True),
        sa.Column("analysis_method", sa.String(length=32), nullable=True),

        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("error_kind", sa.String(length=64), nullable=True),

        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    op.create_index("ix_ingestion_jobs_video_id", "ingestion_jobs", ["video_id"])
    op.create_index("ix_ingestion_jobs_status", "ingestion_jobs", ["status"])


def downgrade() -> None:
    op.drop_index("ix_ingestion_jobs_status", table_name="ingestion_jobs")
    op.drop_index("ix_ingestion_jobs_video_id", table_name="ingestion_jobs")
    op.drop_table("ingestion_jobs")
