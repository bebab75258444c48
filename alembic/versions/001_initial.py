"""Initial schema: assistants, embeds, scrapes, files, calls

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "assistants",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column("vapi_assistant_id", sa.String(128), index=True),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("welcome_message", sa.Text(), nullable=False),
        sa.Column("system_prompt", sa.Text(), nullable=False),
        sa.Column("language", sa.String(16), nullable=False, server_default="en"),
        sa.Column("voice_id", sa.String(128), nullable=False),
        sa.Column("position", sa.String(16), nullable=False, server_default="right"),
        sa.Column("theme", sa.String(16), nullable=False, server_default="light"),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_assistants_user_created", "assistants", ["user_id", "created_at"])

    op.create_table(
        "embed_mappings",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column("embed_id", sa.String(64), nullable=False, unique=True, index=True),
        sa.Column("assistant_id", sa.String(36), sa.ForeignKey("assistants.id"), index=True),
        sa.Column("vapi_assistant_id", sa.String(128), nullable=False),
        sa.Column("name", sa.String(256)),
        sa.Column("api_key", sa.String(128), nullable=False),
        sa.Column("domain_whitelist", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_embed_mappings_user_active", "embed_mappings", ["user_id", "is_active"])

    op.create_table(
        "scraped_websites",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column("assistant_id", sa.String(36), sa.ForeignKey("assistants.id"), index=True),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("firecrawl_job_id", sa.String(128), index=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="queued"),
        sa.Column("pages_scraped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_size_kb", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("content_text", sa.Text()),
        sa.Column("vapi_file_id", sa.String(128)),
        sa.Column("error_message", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("last_checked_at", sa.DateTime()),
        sa.Column("completed_at", sa.DateTime()),
    )
    op.create_index("ix_scraped_websites_user_status", "scraped_websites", ["user_id", "status"])

    op.create_table(
        "assistant_files",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("assistant_id", sa.String(36), sa.ForeignKey("assistants.id"), nullable=False, index=True),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column("filename", sa.String(256), nullable=False),
        sa.Column("file_type", sa.String(128), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("storage_path", sa.String(256)),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "call_logs",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("vapi_call_id", sa.String(128), nullable=False, unique=True, index=True),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column("assistant_id", sa.String(36), sa.ForeignKey("assistants.id"), index=True),
        sa.Column("vapi_assistant_id", sa.String(128)),
        sa.Column("call_type", sa.String(64), nullable=False, server_default="webCall"),
        sa.Column("status", sa.String(32), nullable=False, server_default="queued"),
        sa.Column("started_at", sa.DateTime(), index=True),
        sa.Column("ended_at", sa.DateTime()),
        sa.Column("duration_seconds", sa.Integer()),
        sa.Column("ended_reason", sa.String(128)),
        sa.Column("phone_number", sa.String(64)),
        sa.Column("recording_url", sa.Text()),
        sa.Column("transcript", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("messages", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("costs", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("analysis", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("metadata_json", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "call_analytics",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column("assistant_id", sa.String(36), sa.ForeignKey("assistants.id")),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("total_calls", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("successful_calls", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_calls", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_duration_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("average_duration_seconds", sa.Float(), nullable=False, server_default="0"),
        sa.Column("success_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "assistant_id", "date", name="uq_call_analytics_user_assistant_date"),
    )


def downgrade() -> None:
    op.drop_table("call_analytics")
    op.drop_table("call_logs")
    op.drop_table("assistant_files")
    op.drop_index("ix_scraped_websites_user_status", table_name="scraped_websites")
    op.drop_table("scraped_websites")
    op.drop_index("ix_embed_mappings_user_active", table_name="embed_mappings")
    op.drop_table("embed_mappings")
    op.drop_index("ix_assistants_user_created", table_name="assistants")
    op.drop_table("assistants")
