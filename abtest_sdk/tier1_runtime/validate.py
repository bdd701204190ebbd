"""
abtest_sdk.tier1_runtime.validate
──────────────────────────────────────
Admin payload validation. Dicts, raw JSON bodies and already-built models are
all accepted; failures come back as the engine's ValidationError with one
entry per offending field, keyed by dotted path (``variants.0.weight``).
"""
from __future__ import annotations

from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from abtest_sdk.tier0_core.errors import ValidationError

T = TypeVar("T", bound=BaseModel)


def _field_path(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc) or "__root__"


def validate_input(model: Type[T], data: Any) -> T:
    """
    Build *model* from *data* or raise ValidationError.

    Usage:
        draft = validate_input(ExperimentDraft, request_body)
    """
    if isinstance(data, model):
        return data
    try:
        if isinstance(data, (str, bytes)):
            return model.model_validate_json(data)
        return model.model_validate(data)
    except PydanticValidationError as exc:
        fields: dict[str, str] = {}
        for error in exc.errors():
            fields.setdefault(_field_path(tuple(error["loc"])), error["msg"])
        raise ValidationError(
            user_message=f"Invalid {model.__name__} payload.",
            fields=fields,
        ) from exc


__all__ = ["validate_input"]
