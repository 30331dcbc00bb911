"""add_job_reservation_id

Tag each reservation so a job re-enqueued while in flight survives the
completion of the older reservation.

Revision ID: add_job_reservation_id
Revises: add_review_change_trigger
Create Date: 2026-10-20

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "add_job_reservation_id"
down_revision: Union[str, Sequence[str], None] = "add_review_change_trigger"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add search_indexing_jobs.reservation_id."""
    op.add_column(
        "search_indexing_jobs", sa.Column("reservation_id", sa.String(36), nullable=True)
    )


def downgrade() -> None:
    """Drop search_indexing_jobs.reservation_id."""
    op.drop_column("search_indexing_jobs", "reservation_id")
