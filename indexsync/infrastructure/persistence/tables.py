"""SQLAlchemy table definitions - dialect-agnostic (works with SQLite and PostgreSQL)."""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.types import JSON

# Metadata object for all tables
metadata = MetaData()

# ============================================================================
# SEARCH INDEXING JOBS TABLE (live queue)
# ============================================================================
indexing_jobs_table = Table(
    "search_indexing_jobs",
    metadata,
    Column("id", String, primary_key=True),  # Producer-supplied job id
    Column("entity_type", String(32), nullable=False),
    Column("entity_id", String, nullable=False),
    Column("operation", String(16), nullable=False),  # IndexingOperation as string
    Column("cursor", DateTime(timezone=True), nullable=True),
    Column("available_at", DateTime(timezone=True), nullable=False),
    Column("metadata", JSON, nullable=True),
    Column("attempts", Integer, nullable=False, server_default=text("0")),
    Column("max_attempts", Integer, nullable=False),
    Column("last_error", Text, nullable=True),
    Column("reserved_at", DateTime(timezone=True), nullable=True),  # Null = not in flight
    Column("reservation_id", String(36), nullable=True),  # Token of the current reservation
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# Reservation polling
Index(
    "idx_search_indexing_jobs_ready",
    indexing_jobs_table.c.available_at,
    postgresql_where=text("reserved_at IS NULL"),
)

# Stale reservation detection
Index(
    "idx_search_indexing_jobs_reserved",
    indexing_jobs_table.c.reserved_at,
    postgresql_where=text("reserved_at IS NOT NULL"),
)


# ============================================================================
# SEARCH INDEXING DEAD LETTERS TABLE (append-only)
# ============================================================================
dead_letters_table = Table(
    "search_indexing_dead_letters",
    metadata,
    Column("id", String, primary_key=True),  # UUID as string
    Column("job_id", String, nullable=False),
    Column("entity_type", String(32), nullable=False),
    Column("entity_id", String, nullable=False),
    Column("operation", String(16), nullable=False),
    Column("cursor", DateTime(timezone=True), nullable=True),
    Column("metadata", JSON, nullable=True),
    Column("attempts", Integer, nullable=False),
    Column("error", Text, nullable=False),
    Column("failed_at", DateTime(timezone=True), nullable=False),
)

Index("idx_search_indexing_dead_letters_failed_at", dead_letters_table.c.failed_at.desc())


# ============================================================================
# SYSTEM-OF-RECORD TABLES (owned by the CRUD service; read-only here)
# ============================================================================
users_table = Table(
    "users",
    metadata,
    Column("id", String, primary_key=True),
    Column("email", String(255), nullable=False),
    Column("display_name", String(255), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

category_tiers_table = Table(
    "category_tiers",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String(255), nullable=False),
    Column("priority", Integer, nullable=False),
)

reviews_table = Table(
    "reviews",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, ForeignKey("users.id"), nullable=False),
    Column("category_tier_id", String, ForeignKey("category_tiers.id"), nullable=True),
    Column("title", String(255), nullable=False),
    Column("content", Text, nullable=False),
    Column("rating", Integer, nullable=False),
    Column("status", String(32), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

Index("idx_reviews_updated_at_id", reviews_table.c.updated_at, reviews_table.c.id)

review_activity_metrics_table = Table(
    "review_activity_metrics",
    metadata,
    Column("id", String, primary_key=True),
    Column("review_id", String, ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False),
    Column("type", String(32), nullable=False),
    Column("quantity", Integer, nullable=False),
)

boost_purchases_table = Table(
    "boost_purchases",
    metadata,
    Column("id", String, primary_key=True),
    Column("review_id", String, ForeignKey("reviews.id", ondelete="SET NULL"), nullable=True),
    Column("credits_purchased", Integer, nullable=False),
    Column("credits_consumed", Integer, nullable=False),
)
