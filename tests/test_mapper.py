from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from spelo_admin.mapper import map_job, map_job_list, map_job_page, map_upload_task
from spelo_admin.shapes import MissingJobIdError
from spelo_admin.status_canon import CanonicalStatus

CAMEL = {
    "id": 11,
    "jobType": "AUDIO_PROCESSING",
    "status": "running",
    "totalItems": 10,
    "completedItems": 4,
    "failedItems": 1,
    "progressPercent": 40,
    "currentStep": "ALIGNING",
    "createdAt": "2025-01-02T03:04:05Z",
    "updatedAt": "2025-01-02T03:10:00Z",
    "completedAt": None,
    "inputPayload": json.dumps({"lessonId": 7, "transcript": "hello", "audioUrl": "https://cdn/x/a.mp3"}),
    "resultPayload": {"data": {"transcript": "hello world", "objectName": "bucket/audio/a-final.mp3"}},
}

SNAKE = {
    "id": "11",
    "job_type": "AUDIO_PROCESSING",
    "status": "RUNNING",
    "total_items": 10,
    "completed_items": 4,
    "failed_items": 1,
    "progress_percent": 40.0,
    "current_step": "ALIGNING",
    "created_at": "2025-01-02T03:04:05+00:00",
    "updated_at": "2025-01-02T03:10:00+00:00",
    "completed_at": None,
    "input_payload": {"lesson_id": 7, "transcript": "hello", "audio_url": "https://cdn/x/a.mp3"},
    "result_payload": json.dumps({"data": {"transcript": "hello world", "object_name": "bucket/audio/a-final.mp3"}}),
}


def test_naming_convention_invariance():
    assert map_job(CAMEL, "list") == map_job(SNAKE, "list")


def test_list_record_mapping():
    job = map_job(CAMEL, "list")
    assert job.id == 11
    assert job.status is CanonicalStatus.PROCESSING
    assert job.job_type == "AUDIO_PROCESSING"
    assert (job.total_items, job.completed_items, job.failed_items) == (10, 4, 1)
    assert job.progress_percent == 40.0
    assert job.lesson_id == 7
    assert job.transcript == "hello world"
    assert job.audio_url == "https://cdn/x/a.mp3"
    assert job.audio_object == "a-final.mp3"
    assert job.created_at == datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert job.finalized_at is None


def test_single_audio_job_with_flattened_payload():
    response = {
        "success": True,
        "data": {
            "id": 21,
            "status": "REVIEWING",
            "createdAt": "2025-02-01T00:00:00Z",
            "data": {
                "lessonId": 3,
                "lessonName": "Greetings",
                "lessonType": 2,
                "transcript": "hi",
                "audioUrl": "https://cdn/audio/lesson3.mp3",
                "sentences": [{"text": "hi", "start": 0, "end": 1.5}, "junk", {"start": "x"}],
            },
        },
    }
    job = map_job(response, "single")
    assert job.id == 21
    assert job.status is CanonicalStatus.REVIEWING
    assert job.lesson_name == "Greetings"
    assert job.lesson_type == 2
    assert job.audio_object == "lesson3.mp3"
    assert [s.text for s in job.sentences] == ["hi"]
    assert job.updated_at == job.created_at


def test_single_vocab_job_reads_detail_body():
    response = {
        "success": True,
        "data": {
            "id": 5,
            "job_type": "VOCAB_ENRICH",
            "status": "PARTIAL",
            "total_items": None,
            "created_at": "2025-03-01T10:00:00Z",
            "data": {"summary": "ignored"},
            "detail": {
                "total_words": 3,
                "completed_words": 2,
                "failed_words": 1,
                "items": [
                    {"id": 1, "item_key": "apple", "status": "success"},
                    {"id": 2, "word": "run", "status": "FAILED", "errorMessage": "timeout"},
                    {"id": "3", "item_key": "blue"},
                ],
            },
        },
    }
    job = map_job(response, "single")
    assert job.status is CanonicalStatus.PARTIAL
    assert (job.total_items, job.completed_items, job.failed_items) == (3, 2, 1)
    assert [i.word for i in job.items] == ["apple", "run", "blue"]
    assert [i.status for i in job.items] == ["SUCCESS", "FAILED", "PENDING"]
    assert job.items[1].error_message == "timeout"
    assert job.items[2].id == 3


def test_malformed_fields_degrade_independently():
    job = map_job({
        "id": 2,
        "status": {"weird": True},
        "progressPercent": "n/a",
        "totalItems": "lots",
        "createdAt": "yesterday-ish",
        "updatedAt": "2025-01-01T00:00:00Z",
        "inputPayload": "{broken",
        "sentences": "nope",
    }, "list")
    assert job.status is CanonicalStatus.PROCESSING
    assert job.progress_percent is None
    assert job.total_items is None
    assert job.created_at == job.updated_at == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert job.lesson_id is None
    assert job.sentences == []


def test_timestamps_never_blank():
    before = datetime.now(timezone.utc)
    job = map_job({"id": 1}, "single")
    assert job.created_at >= before
    assert job.updated_at == job.created_at
    assert job.status is CanonicalStatus.PROCESSING


@pytest.mark.parametrize("raw", [{}, {"status": "COMPLETED"}, {"id": "abc"}, {"id": None}, {"id": 1.5}, "oops"])
def test_single_mapping_requires_identity(raw):
    with pytest.raises(MissingJobIdError):
        map_job(raw, "single")


def test_unknown_shape_is_rejected():
    with pytest.raises(ValueError):
        map_job({"id": 1}, "detail")


def test_mapping_own_output_keeps_id_and_status():
    for shape, raw in (("list", CAMEL), ("single", {"data": {"id": 9, "status": "FINALIZED"}})):
        first = map_job(raw, shape)
        again = map_job(first.model_dump(), shape)
        assert (again.id, again.status) == (first.id, first.status)
        assert again == first


def test_list_mapping_drops_only_identityless_entries():
    records = [{"id": 1, "status": "PENDING"}, {"status": "FAILED"}, {"job_id": 3, "id": "3"}]
    jobs = map_job_list(records)
    assert [j.id for j in jobs] == [1, 3]


def _raw_pair():
    return [
        {"id": 1, "status": "COMPLETED", "created_at": "2025-01-01T00:00:00Z"},
        {"id": 2, "status": "FAILED", "created_at": "2025-01-01T00:00:00Z"},
    ]


def test_paginated_and_bare_envelopes_are_equivalent():
    bare = map_job_page(_raw_pair())
    paginated = map_job_page({
        "content": _raw_pair(),
        "pageNumber": 1,
        "pageSize": 2,
        "totalElements": 2,
        "totalPages": 1,
        "last": True,
    })
    wrapped = map_job_page({"jobs": _raw_pair()})
    assert bare == paginated == wrapped
    assert (bare.page_number, bare.page_size, bare.total_elements, bare.total_pages, bare.last) == (1, 2, 2, 1, True)


def test_data_list_envelope_with_page_metadata():
    page = map_job_page({"success": True, "data": _raw_pair(), "total": 25, "page": 2, "size": 10})
    assert [j.id for j in page.content] == [1, 2]
    assert (page.page_number, page.page_size, page.total_elements, page.total_pages, page.last) == (2, 10, 25, 3, False)


def test_paginated_envelope_nested_under_data():
    page = map_job_page({"data": {"content": _raw_pair(), "page": 3, "size": 2, "total": 6, "totalPages": 3}})
    assert page.last is True
    assert page.total_pages == 3


def test_unusable_list_envelope_yields_empty_page():
    page = map_job_page(None)
    assert page.content == [] and page.last is True


def test_upload_task_progress():
    task = map_upload_task(
        {"success": True, "status": "uploading", "progress": 55, "message": "3 of 5", "uploaded": 3, "total": 5},
        "task-abc",
    )
    assert task.task_id == "task-abc"
    assert task.status is CanonicalStatus.PROCESSING
    assert task.progress() == 55.0
    assert (task.completed_items, task.total_items) == (3, 5)
    assert task.current_step == "3 of 5"
    assert map_upload_task({"status": "completed"}, "t").status is CanonicalStatus.COMPLETED
