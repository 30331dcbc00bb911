"""IndexingJobHandler port - resolves one reserved job into an outcome."""

from typing import Protocol

from indexsync.domain.indexing.model.job import IndexingJob, JobResult


class IndexingJobHandler(Protocol):
    async def handle(self, job: IndexingJob) -> JobResult:
        """Apply the job. Raising signals a failure the queue should retry."""
        ...
