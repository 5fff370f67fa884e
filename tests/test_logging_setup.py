from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from spelo_admin.logctx import set_job_id, set_job_kind, set_poll_tick
from spelo_admin.logging_setup import JsonFormatter


def _record(msg, args=None, level=logging.INFO):
    return logging.LogRecord("poller", level, __file__, 10, msg, args, None)


def test_json_formatter_includes_poll_context():
    set_job_id("42")
    set_job_kind("vocab")
    set_poll_tick(3)
    try:
        line = JsonFormatter().format(_record("job %s status %s", ("42", "PROCESSING")))
    finally:
        set_job_id(None)
        set_job_kind(None)
        set_poll_tick(None)
    payload = json.loads(line)
    assert payload["msg"] == "job 42 status PROCESSING"
    assert payload["lvl"] == "INFO"
    assert payload["logger"] == "poller"
    assert (payload["job_id"], payload["job_kind"], payload["poll_tick"]) == ("42", "vocab", 3)
    assert payload["ts"].endswith("Z")


def test_json_formatter_omits_unset_context_and_merges_dict_args():
    record = _record("dropped entry", ({"index": 1},))
    payload = json.loads(JsonFormatter().format(record))
    assert "job_id" not in payload
    assert payload["index"] == 1
