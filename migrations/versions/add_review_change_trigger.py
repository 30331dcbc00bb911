"""add_review_change_trigger

Publish a change notification for every review insert, update and delete.

Revision ID: add_review_change_trigger
Revises: add_search_indexing_tables
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import context, op

# revision identifiers, used by Alembic.
revision: str = "add_review_change_trigger"
down_revision: Union[str, Sequence[str], None] = "add_search_indexing_tables"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DEFAULT_CHANNEL = "search_indexing_changes"


def _channel() -> str:
    return context.config.attributes.get("notify_channel", DEFAULT_CHANNEL)


def upgrade() -> None:
    """Install notify_review_change() and its trigger (PostgreSQL only)."""
    if op.get_bind().dialect.name != "postgresql":
        return

    channel = _channel()
    op.execute(
        f"""
        CREATE OR REPLACE FUNCTION notify_review_change() RETURNS trigger AS $$
        DECLARE
            review_id text;
            op_name text;
            change_cursor timestamptz;
        BEGIN
            IF TG_OP = 'DELETE' THEN
                review_id := OLD.id;
                op_name := 'DELETE';
                change_cursor := now();
            ELSE
                review_id := NEW.id;
                op_name := 'UPSERT';
                change_cursor := NEW.updated_at;
            END IF;

            PERFORM pg_notify(
                '{channel}',
                json_build_object(
                    'id', 'review:' || review_id,
                    'entityType', 'review',
                    'entityId', review_id,
                    'operation', op_name,
                    'cursor', to_char(
                        change_cursor AT TIME ZONE 'UTC',
                        'YYYY-MM-DD"T"HH24:MI:SS.MS"Z"'
                    )
                )::text
            );
            RETURN NULL;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute("DROP TRIGGER IF EXISTS reviews_search_indexing ON reviews")
    op.execute(
        """
        CREATE TRIGGER reviews_search_indexing
        AFTER INSERT OR UPDATE OR DELETE ON reviews
        FOR EACH ROW EXECUTE FUNCTION notify_review_change()
        """
    )


def downgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    op.execute("DROP TRIGGER IF EXISTS reviews_search_indexing ON reviews")
    op.execute("DROP FUNCTION IF EXISTS notify_review_change()")
