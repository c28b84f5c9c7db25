"""Canonical hashing helpers for reproducibility checks.

Every projection is fingerprinted twice: once over everything that went in
(profile, snapshot, history, tracked case, options, as-of date) and once
over what came out.  Same inputs must give the same output hash; a changed
output hash with an unchanged input hash means the engine is not
deterministic.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from pydantic import BaseModel

from stateside.models.stages import CATALOG_VERSION


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def to_jsonable(obj: Any) -> Any:
    """Convert models (and containers of models) into plain JSON values."""
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    return obj


def compute_input_hash(inputs: dict[str, Any]) -> str:
    """SHA-256 of canonical(catalog version + inputs).

    The catalog version is folded in so a data migration changes every
    fingerprint even when user inputs do not.
    """
    payload = {"catalog_version": CATALOG_VERSION, "inputs": to_jsonable(inputs)}
    return sha256_hex(canonical_json_bytes(payload))


def compute_output_hash(outputs: dict[str, Any]) -> str:
    """SHA-256 of canonical(outputs)."""
    payload = {"outputs": to_jsonable(outputs)}
    return sha256_hex(canonical_json_bytes(payload))
