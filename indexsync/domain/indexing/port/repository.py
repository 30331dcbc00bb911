"""ReviewIndexingRepository port - read access to reviews as indexing projections."""

from typing import AsyncIterator, Protocol

from indexsync.domain.indexing.model.review import ReviewForIndexing


class ReviewIndexingRepository(Protocol):
    async def get_by_id(self, review_id: str) -> ReviewForIndexing | None:
        """Load the latest committed state of one review."""
        ...

    async def list_by_ids(self, review_ids: list[str]) -> list[ReviewForIndexing]:
        ...

    def iter_all(self, page_size: int = 1000) -> AsyncIterator[ReviewForIndexing]:
        """Yield every review ordered by last-modified ascending, paging internally."""
        ...
