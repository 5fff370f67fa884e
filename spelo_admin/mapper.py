from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from .fields import MISSING, first_present, resolve_field
from .logging_setup import get_logger
from .schemas import AudioSentence, CanonicalJob, JobPage, UploadTask, VocabJobItem
from .shapes import (
    MissingJobIdError,
    coerce_int,
    merge_payloads,
    normalize_locator,
    strip_envelope,
    unwrap,
)
from .status_canon import classify

log = get_logger("mapper")

Shape = Literal["list", "single"]

_DATETIME = TypeAdapter(datetime)


def _present(value: Any) -> bool:
    return value is not MISSING and value is not None


def _to_float(value: Any) -> Optional[float]:
    if not _present(value) or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _to_int(value: Any) -> Optional[int]:
    if not _present(value):
        return None
    return coerce_int(value)


def _to_str(value: Any) -> Optional[str]:
    if not _present(value) or isinstance(value, (Mapping, list, bool)):
        return None
    return value if isinstance(value, str) else str(value)


def _to_datetime(value: Any) -> Optional[datetime]:
    if not _present(value) or isinstance(value, bool) or value == "":
        return None
    try:
        dt = _DATETIME.validate_python(value)
    except ValidationError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _sentences(value: Any) -> List[AudioSentence]:
    out: List[AudioSentence] = []
    if not isinstance(value, list):
        return out
    for entry in value:
        if not isinstance(entry, Mapping):
            continue
        try:
            out.append(AudioSentence.model_validate(entry))
        except ValidationError:
            log.debug("skipping malformed sentence %r", entry)
    return out


def _items(value: Any) -> List[VocabJobItem]:
    if not isinstance(value, list):
        return []
    items = []
    for entry in value:
        if not isinstance(entry, Mapping):
            continue
        status = _to_str(resolve_field(entry, "status"))
        items.append(VocabJobItem(
            id=_to_int(resolve_field(entry, "id")) or 0,
            word=_to_str(resolve_field(entry, "item_word")) or "",
            status=(status or "PENDING").strip().upper(),
            error_message=_to_str(resolve_field(entry, "error_message")),
        ))
    return items


def _payload_view(record: Any) -> Dict[str, Any]:
    return merge_payloads(
        resolve_field(record, "input_payload"),
        resolve_field(record, "result_payload"),
    )


def _sources(raw: Any, shape: Shape):
    if shape == "list":
        record = raw
        return (record,), (_payload_view(record), record)
    job = strip_envelope(raw)
    body = unwrap(job)
    return (job, body), (body, _payload_view(job), job)


def map_job(raw: Any, shape: Shape = "single") -> CanonicalJob:
    """Collapse one raw job record into a ``CanonicalJob``.

    Only a missing or non-integral id is fatal (``MissingJobIdError``);
    every other field degrades on its own.
    """
    if shape not in ("list", "single"):
        raise ValueError(f"unknown shape {shape!r}")
    if not isinstance(raw, Mapping):
        raise MissingJobIdError(f"job record is not an object: {type(raw).__name__}")

    meta, payload = _sources(raw, shape)

    job_id = _to_int(first_present(meta, "id"))
    if job_id is None:
        raise MissingJobIdError("job record carries no usable id")

    now = datetime.now(timezone.utc)
    created_at = _to_datetime(first_present(meta, "created_at"))
    updated_at = _to_datetime(first_present(meta, "updated_at")) or created_at
    created_at = created_at or updated_at or now

    return CanonicalJob(
        id=job_id,
        status=classify(_to_str(first_present(meta, "status"))),
        job_type=_to_str(first_present(meta, "job_type")),
        progress_percent=_to_float(first_present(meta, "progress_percent")),
        current_step=_to_str(first_present(meta, "current_step")),
        total_items=_to_int(first_present(meta, "total_items")),
        completed_items=_to_int(first_present(meta, "completed_items")),
        failed_items=_to_int(first_present(meta, "failed_items")),
        created_at=created_at,
        updated_at=updated_at or created_at,
        finalized_at=_to_datetime(first_present(meta, "finalized_at")),
        lesson_id=_to_int(first_present(payload, "lesson_id")),
        lesson_name=_to_str(first_present(payload, "lesson_name")),
        lesson_type=_to_int(first_present(payload, "lesson_type")),
        transcript=_to_str(first_present(payload, "transcript")),
        translated_script=_to_str(first_present(payload, "translated_script")),
        audio_url=_to_str(first_present(payload, "audio_url")),
        audio_object=normalize_locator(first_present(payload, "audio_object")),
        sentences=_sentences(first_present(payload, "sentences")),
        items=_items(first_present(payload, "items")),
    )


def map_job_list(records: Iterable[Any]) -> List[CanonicalJob]:
    jobs: List[CanonicalJob] = []
    for index, raw in enumerate(records):
        try:
            jobs.append(map_job(raw, "list"))
        except MissingJobIdError as err:
            log.warning("dropping job list entry %d: %s", index, err)
    return jobs


def _list_records(envelope: Any):
    """Return (records, metadata source or None for a bare sequence)."""
    if isinstance(envelope, list):
        return envelope, None
    if not isinstance(envelope, Mapping):
        return [], None
    node: Mapping = envelope
    data = node.get("data")
    if isinstance(data, Mapping) and isinstance(resolve_field(data, "content"), list):
        node = data
    content = resolve_field(node, "content")
    if isinstance(content, list):
        return content, node
    if isinstance(node.get("data"), list):
        return node["data"], node
    return [], node


def _int_or(value: Any, default: int) -> int:
    coerced = _to_int(value)
    return default if coerced is None else coerced


def map_job_page(envelope: Any) -> JobPage:
    records, meta = _list_records(envelope)
    content = map_job_list(records)
    count = len(content)
    if meta is None:
        return JobPage(content=content, page_number=1, page_size=count,
                       total_elements=count, total_pages=1, last=True)

    page_number = _int_or(resolve_field(meta, "page_number"), 1)
    page_size = _int_or(resolve_field(meta, "page_size"), count)
    total_elements = _int_or(resolve_field(meta, "total_elements"), count)
    total_pages = _to_int(resolve_field(meta, "total_pages"))
    if total_pages is None:
        total_pages = math.ceil(total_elements / page_size) if page_size > 0 else 1
    total_pages = max(total_pages, 1)
    last = resolve_field(meta, "last")
    if not isinstance(last, bool):
        last = page_number >= total_pages
    return JobPage(
        content=content,
        page_number=page_number,
        page_size=page_size,
        total_elements=total_elements,
        total_pages=total_pages,
        last=last,
    )


def map_upload_task(raw: Any, task_id: str) -> UploadTask:
    sources: Sequence[Any] = (raw, unwrap(raw)) if isinstance(raw, Mapping) else ()
    return UploadTask(
        task_id=str(task_id),
        status=classify(_to_str(first_present(sources, "status"))),
        progress_percent=_to_float(first_present(sources, "progress_percent")),
        current_step=_to_str(first_present(sources, "current_step")),
        total_items=_to_int(first_present(sources, "total_items")),
        completed_items=_to_int(first_present(sources, "completed_items")),
    )
