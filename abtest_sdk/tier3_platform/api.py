"""
abtest_sdk.tier3_platform.api
────────────────────────────────
Transport-agnostic service API. Each handler maps engine results and errors
onto an ApiResponse with an HTTP status so any transport can serve it:

  choose_variant      → 200 {variant_id, token} | 404 | 422 no_variants | 503
  record_impression   → 204 | 404 (dropped, non-fatal) | 503 (retryable)
  record_conversion   → 204 | 404 (dropped, non-fatal) | 503 (retryable)
  get_stats           → 200 {variants: [...]} | 404 | 503
  get_public_variants → 200 {experiment_id, selector, goal_selector, variants} | 404 | 503

Nothing here retries; retry decisions belong to the edge caller.
"""
from __future__ import annotations

from typing import Any

from abtest_sdk.tier0_core.errors import EngineError, NotFoundError
from abtest_sdk.tier0_core.http import ApiResponse, err, no_content, ok
from abtest_sdk.tier0_core.logging import get_logger
from abtest_sdk.tier1_runtime.serialize import to_dict
from abtest_sdk.tier3_platform.service import ExperimentService, get_service

logger = get_logger(__name__)


def _error_response(exc: EngineError, operation: str, **context: Any) -> ApiResponse[None]:
    if exc.status_code >= 500:
        logger.error(operation + ".failed", code=exc.code, detail=exc.detail, **context)
    else:
        logger.warning(operation + ".rejected", code=exc.code, detail=exc.detail, **context)
    return err(exc.to_dict(), exc.status_code, retryable=exc.retryable)


async def choose_variant(
    experiment_id: str,
    token: str | None = None,
    *,
    service: ExperimentService | None = None,
) -> ApiResponse[dict[str, str]]:
    service = service or get_service()
    try:
        assignment = await service.choose_variant(experiment_id, token)
    except EngineError as exc:
        return _error_response(exc, "choose_variant", experiment_id=experiment_id)
    return ok({"variant_id": assignment.variant_id, "token": assignment.token})


async def _track(
    operation: str,
    experiment_id: str,
    variant_id: str,
    service: ExperimentService,
) -> ApiResponse[None]:
    record = (
        service.record_conversion if operation == "record_conversion"
        else service.record_impression
    )
    try:
        await record(experiment_id, variant_id)
    except NotFoundError as exc:
        # Unknown ids are dropped by the caller, never retried.
        logger.info(
            "experiment.event_dropped",
            operation=operation,
            experiment_id=experiment_id,
            variant_id=variant_id,
        )
        return err(exc.to_dict(), exc.status_code, retryable=False)
    except EngineError as exc:
        return _error_response(
            exc, operation, experiment_id=experiment_id, variant_id=variant_id
        )
    return no_content()


async def record_impression(
    experiment_id: str,
    variant_id: str,
    *,
    service: ExperimentService | None = None,
) -> ApiResponse[None]:
    return await _track("record_impression", experiment_id, variant_id, service or get_service())


async def record_conversion(
    experiment_id: str,
    variant_id: str,
    *,
    service: ExperimentService | None = None,
) -> ApiResponse[None]:
    return await _track("record_conversion", experiment_id, variant_id, service or get_service())


async def get_stats(
    experiment_id: str,
    *,
    service: ExperimentService | None = None,
) -> ApiResponse[dict[str, Any]]:
    service = service or get_service()
    try:
        stats = await service.get_stats(experiment_id)
    except EngineError as exc:
        return _error_response(exc, "get_stats", experiment_id=experiment_id)
    return ok({"variants": to_dict(stats)["variants"]})


async def get_public_variants(
    experiment_id: str,
    *,
    service: ExperimentService | None = None,
) -> ApiResponse[dict[str, Any]]:
    """Content payload for the page collaborator: selectors and variant content, no counters."""
    service = service or get_service()
    try:
        public = await service.get_public_variants(experiment_id)
    except EngineError as exc:
        return _error_response(exc, "get_public_variants", experiment_id=experiment_id)
    return ok(to_dict(public))


__all__ = [
    "choose_variant", "record_impression", "record_conversion",
    "get_stats", "get_public_variants",
]
