"""Logical field -> naming aliases.

Backend endpoints disagree on camelCase vs snake_case (and sometimes on the
word itself, e.g. bulk-vocabulary jobs count ``words`` instead of ``items``).
Every lookup in the mapper goes through ``FIELD_ALIASES`` so naming drift is
absorbed in one table.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Sequence, Tuple


class _Missing:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    # job metadata
    "id": ("id",),
    "job_type": ("jobType", "job_type"),
    "status": ("status",),
    "progress_percent": ("progressPercent", "progress_percent", "progress"),
    "current_step": ("currentStep", "current_step", "message"),
    "total_items": ("totalItems", "total_items", "totalWords", "total_words", "total"),
    "completed_items": ("completedItems", "completed_items", "completedWords", "completed_words", "uploaded"),
    "failed_items": ("failedItems", "failed_items", "failedWords", "failed_words"),
    "created_at": ("createdAt", "created_at"),
    "updated_at": ("updatedAt", "updated_at"),
    "finalized_at": ("completedAt", "completed_at", "finalizedAt", "finalized_at"),
    # payload slots
    "input_payload": ("inputPayload", "input_payload"),
    "result_payload": ("resultPayload", "result_payload"),
    # domain payload
    "lesson_id": ("lessonId", "lesson_id"),
    "lesson_name": ("lessonName", "lesson_name"),
    "lesson_type": ("lessonType", "lesson_type", "type"),
    "transcript": ("transcript",),
    "translated_script": ("translatedScript", "translated_script"),
    "audio_url": ("audioUrl", "audio_url"),
    "audio_object": ("objectName", "object_name", "audioObject", "audio_object", "audioUrl", "audio_url"),
    "sentences": ("sentences",),
    "items": ("items",),
    # bulk-vocabulary items
    "item_word": ("item_key", "itemKey", "word"),
    "error_message": ("errorMessage", "error_message"),
    # submit envelopes
    "job_id": ("data.jobId", "data.job_id", "data.id", "jobId", "job_id", "id"),
    # pagination
    "content": ("content", "jobs"),
    "page_number": ("pageNumber", "page_number", "page"),
    "page_size": ("pageSize", "page_size", "size"),
    "total_elements": ("totalElements", "total_elements", "total"),
    "total_pages": ("totalPages", "total_pages"),
    "last": ("last",),
}


def _lookup(record: Any, path: str) -> Any:
    node = record
    for key in path.split("."):
        if not isinstance(node, Mapping) or key not in node:
            return MISSING
        node = node[key]
    return node


def resolve(record: Any, aliases: Sequence[str]) -> Any:
    """First present alias on ``record``; ``None`` counts as present."""
    for alias in aliases:
        value = _lookup(record, alias)
        if value is not MISSING:
            return value
    return MISSING


def resolve_field(record: Any, name: str) -> Any:
    return resolve(record, FIELD_ALIASES[name])


def first_present(sources: Iterable[Any], name: str) -> Any:
    """Resolve ``name`` across ``sources`` in priority order, skipping nulls."""
    fallback = MISSING
    for source in sources:
        value = resolve_field(source, name)
        if value is None:
            fallback = None
            continue
        if value is not MISSING:
            return value
    return fallback


def value_or(value: Any, default: Any = None) -> Any:
    return default if value is MISSING else value
