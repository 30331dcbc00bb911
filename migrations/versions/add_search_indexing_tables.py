"""add_search_indexing_tables

Create the indexing queue and dead-letter tables.

Revision ID: add_search_indexing_tables
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "add_search_indexing_tables"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create search_indexing_jobs and search_indexing_dead_letters."""
    op.create_table(
        "search_indexing_jobs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("entity_type", sa.String(32), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("operation", sa.String(16), nullable=False),
        sa.Column("cursor", sa.DateTime(timezone=True), nullable=True),
        sa.Column("available_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("reserved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    # Polling for ready jobs
    op.create_index(
        "idx_search_indexing_jobs_ready",
        "search_indexing_jobs",
        ["available_at"],
        postgresql_where=sa.text("reserved_at IS NULL"),
    )

    # Stale reservation detection
    op.create_index(
        "idx_search_indexing_jobs_reserved",
        "search_indexing_jobs",
        ["reserved_at"],
        postgresql_where=sa.text("reserved_at IS NOT NULL"),
    )

    op.create_table(
        "search_indexing_dead_letters",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(32), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("operation", sa.String(16), nullable=False),
        sa.Column("cursor", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("error", sa.Text(), nullable=False),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_index(
        "idx_search_indexing_dead_letters_failed_at",
        "search_indexing_dead_letters",
        [sa.text("failed_at DESC")],
    )


def downgrade() -> None:
    """Drop the queue tables."""
    op.drop_index("idx_search_indexing_dead_letters_failed_at", "search_indexing_dead_letters")
    op.drop_table("search_indexing_dead_letters")
    op.drop_index("idx_search_indexing_jobs_reserved", "search_indexing_jobs")
    op.drop_index("idx_search_indexing_jobs_ready", "search_indexing_jobs")
    op.drop_table("search_indexing_jobs")
