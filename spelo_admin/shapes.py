from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import unquote, urlsplit

from .fields import FIELD_ALIASES, MISSING, resolve, resolve_field

WRAPPER_KEYS = ("data", "job", "result")
MAX_ENVELOPE_DEPTH = 2


class MissingJobIdError(ValueError):
    pass


# -- payload slots ------------------------------------------------------------

@dataclass(frozen=True)
class Unparsed:
    text: str


@dataclass(frozen=True)
class Parsed:
    record: Dict[str, Any]


@dataclass(frozen=True)
class Absent:
    pass


PayloadSlot = Union[Unparsed, Parsed, Absent]


def classify_payload(value: Any) -> PayloadSlot:
    if isinstance(value, Mapping):
        return Parsed(dict(value))
    if isinstance(value, (str, bytes, bytearray)):
        text = value.decode("utf-8", "replace") if not isinstance(value, str) else value
        return Unparsed(text) if text.strip() else Absent()
    return Absent()


def _parse_text(text: str) -> PayloadSlot:
    try:
        decoded = json.loads(text)
    except ValueError:
        return Absent()
    if isinstance(decoded, Mapping):
        return Parsed(dict(decoded))
    return Absent()


def decode_payload(value: Any) -> Dict[str, Any]:
    """Total decode: object, JSON text, or nothing. Never raises."""
    slot = classify_payload(value)
    if isinstance(slot, Unparsed):
        slot = _parse_text(slot.text)
    if isinstance(slot, Parsed):
        return slot.record
    return {}


def merge_payloads(input_payload: Any, result_payload: Any) -> Dict[str, Any]:
    """Input fields overlaid by result fields; the result may sit under ``data``."""
    submitted = decode_payload(input_payload)
    produced = decode_payload(result_payload)
    inner = produced.get("data")
    if isinstance(inner, Mapping):
        produced = dict(inner)
    return {**submitted, **produced}


# -- envelopes ----------------------------------------------------------------

def unwrap(payload: Any) -> Any:
    """``detail`` wins over ``data``; otherwise the payload is the body."""
    if not isinstance(payload, Mapping):
        return payload
    detail = payload.get("detail")
    if isinstance(detail, Mapping):
        return detail
    data = payload.get("data")
    if isinstance(data, Mapping):
        return data
    return payload


def _has_identity(record: Mapping) -> bool:
    return resolve_field(record, "id") is not MISSING


def _pick_wrapper(node: Mapping) -> Optional[Mapping]:
    wrappers = [node[key] for key in WRAPPER_KEYS if isinstance(node.get(key), Mapping)]
    for inner in wrappers:
        if _has_identity(inner):
            return inner
    return wrappers[0] if wrappers else None


def strip_envelope(payload: Any) -> Any:
    """Descend through response wrappers until a record carrying an id is found.

    At each level a wrapper that carries an id is preferred; otherwise the
    first mapping wrapper in ``WRAPPER_KEYS`` order is taken.
    """
    node = payload
    for _ in range(MAX_ENVELOPE_DEPTH):
        if not isinstance(node, Mapping) or _has_identity(node):
            return node
        inner = _pick_wrapper(node)
        if inner is None:
            return node
        node = inner
    return node


# -- ids ----------------------------------------------------------------------

def coerce_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        return None
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return int(s)
        except ValueError:
            pass
        try:
            return coerce_int(float(s))
        except ValueError:
            return None
    return None


def extract_job_id(envelope: Any) -> int:
    candidate = MISSING
    for alias in FIELD_ALIASES["job_id"]:
        value = resolve(envelope, (alias,))
        if value is not MISSING and value is not None:
            candidate = value
            break
    if candidate is MISSING:
        # bulk-vocabulary submit answers {"success": true, "data": 42}
        data = envelope.get("data") if isinstance(envelope, Mapping) else None
        if not isinstance(data, (Mapping, list)):
            candidate = data
    job_id = coerce_int(candidate)
    if job_id is None:
        raise MissingJobIdError(f"response carries no usable job id: {envelope!r}"[:300])
    return job_id


# -- storage locators ---------------------------------------------------------

def filename_from_url(url: str) -> Optional[str]:
    try:
        path = urlsplit(url).path
    except ValueError:
        return None
    name = path.split("/")[-1]
    return unquote(name) or None


def normalize_locator(value: Any) -> Optional[str]:
    """Base object name from a bare name, a bucket path or a full URL."""
    if value is None or not isinstance(value, str):
        return None
    s = value.strip()
    if not s:
        return None
    if "://" in s:
        return filename_from_url(s)
    if "/" in s:
        parts = [p for p in PurePosixPath(s).parts if p not in ("/", "")]
        return parts[-1] if parts else None
    return s
