"""Indexing job handlers."""

from indexsync.domain.indexing.handler.review_indexing_handler import ReviewIndexingHandler

__all__ = ["ReviewIndexingHandler"]
