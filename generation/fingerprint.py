# generation/fingerprint.py
"""Deterministic cache keys for generation requests."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any, NewType

from pydantic import BaseModel

RequestFingerprint = NewType("RequestFingerprint", str)


def _normalise(value: Any) -> Any:
    """Collapse whitespace in strings and recurse into containers."""
    if isinstance(value, BaseModel):
        return _normalise(value.model_dump(mode="json"))
    if isinstance(value, Enum):
        return _normalise(value.value)
    if isinstance(value, str):
        return " ".join(value.split())
    if isinstance(value, Mapping):
        return {str(key): _normalise(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_normalise(item) for item in value]
    return value


def canonical_json(value: Any) -> str:
    return json.dumps(
        _normalise(value), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def compute_fingerprint(
    project_id: str,
    project: BaseModel | Mapping[str, Any],
    document_types: Sequence[Any],
) -> RequestFingerprint:
    """Hash the project identity, its data and the requested document list.

    Object key order and runs of whitespace inside strings do not change the
    result. The document list is hashed in the given order because bundles
    are returned in request order.
    """
    payload = {
        "project_id": project_id,
        "project": project,
        "document_types": list(document_types),
    }
    digest = hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
    return RequestFingerprint(digest)
