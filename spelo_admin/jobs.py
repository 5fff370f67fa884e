from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Iterable, Optional, Union

from .client import AdminClient
from .mapper import map_job, map_job_page, map_upload_task
from .poller import PollSession, SleepFn
from .schemas import CanonicalJob, JobFilter, JobPage
from .settings import settings
from .shapes import extract_job_id
from .status_canon import JobKind, terminal_for


class JobsService:
    """One-shot job operations plus poll sessions on top of an ``AdminClient``.

    One-shot calls propagate ``TransportError`` / ``MissingJobIdError`` to the
    caller; only ``watch`` sessions retry.
    """

    def __init__(self, client: AdminClient):
        self.client = client

    async def list_jobs(self, job_filter: Optional[JobFilter] = None) -> JobPage:
        return map_job_page(await self.client.fetch_job_list(job_filter))

    async def get_job(self, job_id: int, kind: JobKind = JobKind.VOCAB) -> CanonicalJob:
        return map_job(await self._fetcher(kind)(job_id), "single")

    async def submit(self, path: str, payload: Dict[str, Any]) -> int:
        return extract_job_id(await self.client.submit_job(path, payload))

    async def submit_vocab_job(self, words: Iterable[str]) -> int:
        return extract_job_id(await self.client.auto_create_vocab(words))

    async def finalize_audio_job(self, job_id: int) -> CanonicalJob:
        """Finalize a reviewed audio job; the backend answers with the updated job."""
        return map_job(await self.client.finalize_audio_job(job_id), "single")

    def _fetcher(self, kind: JobKind) -> Callable[[Any], Any]:
        if kind is JobKind.AUDIO:
            return self.client.fetch_audio_job
        if kind is JobKind.UPLOAD:
            return self.client.fetch_upload_task
        return self.client.fetch_job_status

    def watch(
        self,
        job_id: Union[int, str],
        kind: JobKind = JobKind.VOCAB,
        *,
        interval: Optional[float] = None,
        terminal: Optional[Iterable[Any]] = None,
        on_update: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        sleep: Optional[SleepFn] = None,
    ) -> PollSession:
        """Open (and start) a poll session; call from inside the event loop."""
        kind = JobKind(kind)
        if kind is JobKind.UPLOAD:
            mapper = lambda raw: map_upload_task(raw, str(job_id))
        else:
            mapper = lambda raw: map_job(raw, "single")
        session = PollSession(
            job_id,
            self._fetcher(kind),
            interval=settings.poll_interval_for(kind) if interval is None else interval,
            terminal=terminal_for(kind) if terminal is None else terminal,
            mapper=mapper,
            on_update=on_update,
            on_error=on_error,
            sleep=sleep or asyncio.sleep,
            kind=kind.value,
        )
        return session.start()
