from __future__ import annotations
import logging, json, sys, datetime
from typing import Any, Dict, Optional, TextIO
from .logctx import ctx_snapshot

class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "lvl": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for attr in ("pathname", "lineno", "funcName"):
            base[attr] = getattr(record, attr, None)
        # job_id / job_kind / poll_tick of the session emitting the record
        base.update({k: v for k, v in ctx_snapshot().items() if v is not None})
        if isinstance(record.args, dict):
            base.update(record.args)
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, default=str)

def setup_json_logging(level: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    from .settings import settings
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    for h in list(root.handlers):
        root.removeHandler(h)
    # stderr keeps the CLI's stdout machine-readable
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    logging.getLogger("httpx").setLevel(logging.WARNING)

def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
