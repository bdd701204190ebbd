"""
abtest_sdk.tier1_runtime.serialize
───────────────────────────────────────
Stable JSON serialization for persisted experiment records and API payloads.
Pydantic models round-trip through model_dump_json / model_validate_json so
field additions stay backwards compatible.
"""
from __future__ import annotations

import json
from typing import Any, Type, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


def serialize(obj: BaseModel | dict | list) -> bytes:
    """
    Serialize a Pydantic model or dict to JSON bytes.

    Usage:
        data = serialize(experiment)           # → b'{"id": "...", ...}'
    """
    if isinstance(obj, BaseModel):
        return obj.model_dump_json().encode()
    return json.dumps(obj, default=str).encode()


def deserialize(data: bytes | str, model: Type[T]) -> T:
    """
    Deserialize bytes/str into a Pydantic model.

    Usage:
        experiment = deserialize(raw_bytes, Experiment)
    """
    if isinstance(data, bytes):
        data = data.decode()
    return model.model_validate_json(data)


def to_dict(obj: BaseModel) -> dict[str, Any]:
    """Convert a Pydantic model to a plain dict (for JSON responses)."""
    return obj.model_dump(mode="json")


__all__ = ["serialize", "deserialize", "to_dict"]
