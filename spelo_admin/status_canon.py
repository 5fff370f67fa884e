from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable


class CanonicalStatus(str, Enum):
    PENDING = "PENDING"
    WAITING_FOR_INPUT = "WAITING_FOR_INPUT"
    READY_TO_PROCESS = "READY_TO_PROCESS"
    PROCESSING = "PROCESSING"
    REVIEWING = "REVIEWING"
    REPROCESSING = "REPROCESSING"
    PARTIAL = "PARTIAL"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    FINALIZED = "FINALIZED"


class JobKind(str, Enum):
    VOCAB = "vocab"
    AUDIO = "audio"
    UPLOAD = "upload"


# Anything unmatched lands here; it is never part of a terminal set.
FALLBACK = CanonicalStatus.PROCESSING

CANON = {s.value: s for s in CanonicalStatus}
MAP = {
    "RUNNING": CanonicalStatus.PROCESSING,
}

TERMINAL_STATUSES: Dict[JobKind, FrozenSet[CanonicalStatus]] = {
    JobKind.VOCAB: frozenset({
        CanonicalStatus.COMPLETED,
        CanonicalStatus.FAILED,
        CanonicalStatus.PARTIAL,
    }),
    # audio pages keep polling only while PENDING/PROCESSING/REPROCESSING
    JobKind.AUDIO: frozenset(CanonicalStatus) - {
        CanonicalStatus.PENDING,
        CanonicalStatus.PROCESSING,
        CanonicalStatus.REPROCESSING,
    },
    JobKind.UPLOAD: frozenset({
        CanonicalStatus.COMPLETED,
        CanonicalStatus.FAILED,
    }),
}


def classify(raw: Any) -> CanonicalStatus:
    """Map any raw status onto the closed set. Unknown or absent -> PROCESSING."""
    if raw is None:
        return FALLBACK
    if isinstance(raw, CanonicalStatus):
        return raw
    v = str(getattr(raw, "value", raw)).strip().upper()
    if not v:
        return FALLBACK
    if v in MAP:
        return MAP[v]
    return CANON.get(v, FALLBACK)


def terminal_set(statuses: Iterable[Any]) -> FrozenSet[CanonicalStatus]:
    result = frozenset(classify(s) for s in statuses)
    if FALLBACK in result:
        raise ValueError(f"{FALLBACK.value} cannot be terminal (it absorbs unknown statuses)")
    return result


def terminal_for(kind: Any) -> FrozenSet[CanonicalStatus]:
    return TERMINAL_STATUSES[JobKind(kind)]


def is_terminal(status: Any, terminal: Iterable[CanonicalStatus]) -> bool:
    return classify(status) in frozenset(terminal)
