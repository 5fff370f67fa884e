from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from spelo_admin.fields import FIELD_ALIASES, MISSING, first_present, resolve, resolve_field


def test_resolve_returns_first_present_alias():
    record = {"object_name": "b.mp3", "objectName": "a.mp3"}
    assert resolve(record, ["objectName", "object_name"]) == "a.mp3"
    assert resolve(record, ["object_name", "objectName"]) == "b.mp3"


def test_resolve_treats_none_as_present():
    record = {"objectName": None, "object_name": "b.mp3"}
    assert resolve(record, ["objectName", "object_name"]) is None


def test_resolve_signals_absence_without_raising():
    assert resolve({}, ["a", "b"]) is MISSING
    assert resolve(None, ["a"]) is MISSING
    assert resolve(["a"], ["a"]) is MISSING
    assert not MISSING


def test_resolve_follows_dotted_paths():
    envelope = {"data": {"job_id": 9}}
    assert resolve(envelope, ["data.jobId", "data.job_id"]) == 9
    assert resolve({"data": 5}, ["data.id"]) is MISSING


def test_every_field_has_camel_and_snake_aliases_where_they_differ():
    for name, aliases in FIELD_ALIASES.items():
        assert aliases, name
        assert len(set(aliases)) == len(aliases), name
    for name in ("progress_percent", "current_step", "total_items", "completed_items",
                 "failed_items", "created_at", "updated_at", "lesson_id", "audio_url"):
        keys = FIELD_ALIASES[name]
        assert any("_" in k for k in keys), name
        assert any(k != k.lower() for k in keys), name


def test_resolve_field_handles_both_conventions():
    assert resolve_field({"progressPercent": 40}, "progress_percent") == 40
    assert resolve_field({"progress_percent": 40}, "progress_percent") == 40
    assert resolve_field({"total_words": 3}, "total_items") == 3


def test_first_present_skips_nulls_across_sources():
    job = {"totalItems": None}
    detail = {"total_words": 12}
    assert first_present([job, detail], "total_items") == 12
    assert first_present([job], "total_items") is None
    assert first_present([{}], "total_items") is MISSING
