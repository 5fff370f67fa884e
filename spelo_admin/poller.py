"""Client-side polling of a server-side job.

The session state is an immutable ``PollState``; the loop replaces it only
through ``start`` / ``on_result`` / ``on_error`` / ``cancel``. Once a state is
COMPLETED or CANCELLED every transition returns it unchanged, so a late fetch
can never revive a finished session.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, Optional

from .logctx import set_job_id, set_job_kind, set_poll_tick
from .logging_setup import get_logger
from .mapper import map_job
from .status_canon import CanonicalStatus, classify, terminal_set

log = get_logger("poller")

FetchFn = Callable[[Any], Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[Any]]


class Phase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollState:
    job_id: Any
    terminal_statuses: FrozenSet[CanonicalStatus]
    phase: Phase = Phase.IDLE
    last_job: Any = None
    last_error: Optional[BaseException] = None
    ticks: int = 0

    @property
    def active(self) -> bool:
        return self.phase is Phase.ACTIVE

    @property
    def terminal(self) -> bool:
        return self.phase is Phase.COMPLETED

    @property
    def cancelled(self) -> bool:
        return self.phase is Phase.CANCELLED

    @property
    def finished(self) -> bool:
        return self.phase in (Phase.COMPLETED, Phase.CANCELLED)


def start(state: PollState) -> PollState:
    if state.phase is not Phase.IDLE:
        return state
    return replace(state, phase=Phase.ACTIVE)


def on_result(state: PollState, job: Any) -> PollState:
    if state.phase is not Phase.ACTIVE:
        return state
    done = classify(getattr(job, "status", None)) in state.terminal_statuses
    return replace(
        state,
        phase=Phase.COMPLETED if done else Phase.ACTIVE,
        last_job=job,
        last_error=None,
        ticks=state.ticks + 1,
    )


def on_error(state: PollState, err: BaseException) -> PollState:
    if state.phase is not Phase.ACTIVE:
        return state
    return replace(state, last_error=err, ticks=state.ticks + 1)


def cancel(state: PollState) -> PollState:
    if state.finished:
        return state
    return replace(state, phase=Phase.CANCELLED)


class PollSession:
    """Polls ``fetch(job_id)`` every ``interval`` seconds until a terminal status.

    Must be started from inside a running event loop. Fetches never overlap:
    the next one is scheduled only after the previous tick has been applied.
    Fetch or mapping failures are reported through ``on_error`` and retried on
    the next tick; only a terminal status or ``cancel()`` ends the loop.
    """

    def __init__(
        self,
        job_id: Any,
        fetch: FetchFn,
        *,
        interval: float,
        terminal: Iterable[Any],
        mapper: Optional[Callable[[Any], Any]] = None,
        on_update: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        sleep: SleepFn = asyncio.sleep,
        kind: Optional[str] = None,
    ):
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self._state = PollState(job_id=job_id, terminal_statuses=terminal_set(terminal))
        self._fetch = fetch
        self._interval = interval
        self._mapper = mapper or map_job
        self._on_update = on_update
        self._on_error = on_error
        self._sleep = sleep
        self._kind = kind
        self._task: Optional[asyncio.Task] = None
        self._in_flight = False

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def job_id(self) -> Any:
        return self._state.job_id

    def start(self) -> "PollSession":
        if self._state.phase is not Phase.IDLE:
            raise RuntimeError(f"poll session for job {self.job_id} already {self._state.phase.value}")
        self._state = start(self._state)
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self

    def cancel(self) -> None:
        if self._state.finished:
            return
        self._state = cancel(self._state)
        log.info("polling cancelled for job %s after %d tick(s)", self.job_id, self._state.ticks)
        # an in-flight fetch is left to resolve; _run drops its result
        if self._task is not None and not self._in_flight and not self._task.done():
            self._task.cancel()

    async def wait(self) -> PollState:
        if self._task is not None:
            await asyncio.wait({self._task})
            if not self._task.cancelled() and self._task.exception() is not None:
                raise self._task.exception()
        return self._state

    async def __aenter__(self) -> "PollSession":
        if self._state.phase is Phase.IDLE:
            self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()
        await self.wait()

    async def _tick(self) -> Any:
        self._in_flight = True
        try:
            raw = await self._fetch(self.job_id)
        finally:
            self._in_flight = False
        return self._mapper(raw)

    async def _run(self) -> None:
        set_job_id(str(self.job_id))
        set_job_kind(self._kind)
        while self._state.active:
            set_poll_tick(self._state.ticks + 1)
            try:
                job = await self._tick()
            except Exception as err:
                if not self._state.active:
                    log.debug("discarding failed fetch for cancelled job %s", self.job_id)
                    return
                self._state = on_error(self._state, err)
                log.warning("status fetch failed for job %s: %s", self.job_id, err)
                if self._on_error is not None:
                    self._on_error(err)
            else:
                if not self._state.active:
                    log.debug("discarding status for cancelled job %s", self.job_id)
                    return
                self._state = on_result(self._state, job)
                log.debug("job %s status %s", self.job_id, getattr(job, "status", None))
                if self._on_update is not None:
                    self._on_update(job)
                if self._state.terminal:
                    log.info("job %s reached %s after %d tick(s)", self.job_id,
                             classify(job.status).value, self._state.ticks)
                    return
            if not self._state.active:
                return
            await self._sleep(self._interval)
