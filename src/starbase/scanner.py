"""Repository scan service: fetch + build, with in-flight request coalescing."""

from __future__ import annotations

import asyncio
import logging

from starbase.config import Settings, get_settings
from starbase.errors import BuildError, FetchError
from starbase.pipeline.fetcher import RepoFetcher
from starbase.pipeline.models import BuildOptions, GraphDocument
from starbase.pipeline.service import build_graph_document
from starbase.utils import redact

log = logging.getLogger(__name__)


class ScanService:
    """Owns the fetcher and the map of in-flight builds.

    Concurrent requests for the same ``repo:sparse_dir`` key share one
    build; every waiter receives the same document or the same error.
    Entries are removed as soon as the build finishes, so a later request
    after a failure starts a fresh attempt.
    """

    def __init__(self, settings: Settings | None = None, fetcher: RepoFetcher | None = None) -> None:
        self.settings = settings or get_settings()
        self.fetcher = fetcher or RepoFetcher(self.settings)
        self._jobs: dict[str, asyncio.Task[GraphDocument]] = {}

    @property
    def in_flight(self) -> list[str]:
        return list(self._jobs)

    async def scan(self, options: BuildOptions) -> GraphDocument:
        key = options.job_key
        task = self._jobs.get(key)
        if task is None:
            task = asyncio.create_task(self._run(options), name=f"scan:{key}")
            self._jobs[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            log.info("Joining in-flight scan for %s", key)
        # shield: one waiter being cancelled must not cancel the shared build
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._jobs.get(key) is task:
            del self._jobs[key]

    async def _run(self, options: BuildOptions) -> GraphDocument:
        token = options.token
        try:
            src_root = await self.fetcher.fetch(options.repo, options.sparse_dir, token)
            return await build_graph_document(
                src_root, options, concurrency=self.settings.resolve_concurrency,
            )
        except FetchError as exc:
            message = redact(str(exc), token)
            log.error("Scan failed for %s: %s", options.repo, message)
            raise type(exc)(message) from None
        except Exception as exc:
            message = redact(str(exc) or type(exc).__name__, token)
            log.error("Scan failed for %s: %s", options.repo, message)
            raise BuildError(message) from None
