from __future__ import annotations
import contextvars
from typing import Dict, Optional

_job_id    = contextvars.ContextVar("job_id", default=None)
_job_kind  = contextvars.ContextVar("job_kind", default=None)
_poll_tick = contextvars.ContextVar("poll_tick", default=None)

def set_job_id(v: Optional[str]):   _job_id.set(v)
def set_job_kind(v: Optional[str]): _job_kind.set(v)
def set_poll_tick(v: Optional[int]): _poll_tick.set(v)

def ctx_snapshot() -> Dict[str, Optional[object]]:
    return {
        "job_id": _job_id.get(),
        "job_kind": _job_kind.get(),
        "poll_tick": _poll_tick.get(),
    }
