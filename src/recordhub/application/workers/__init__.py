"""Worker system - Background job processing."""

from recordhub.application.workers.reindex_worker import ReindexWorker, create_reindex_worker

__all__ = [
    "ReindexWorker",
    "create_reindex_worker",
]
