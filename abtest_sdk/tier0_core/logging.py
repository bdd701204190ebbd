"""
abtest_sdk.tier0_core.logging
──────────────────────────────
structlog event logging for the engine. Event names are dotted
(``experiment.conversion_recorded``, ``experiment.update_conflict``) and every
record carries the service name and environment from EngineConfig.

Visitor tokens are user-identifying: any key in _REDACT_KEYS is masked before
a record reaches the stdout handler, including inside nested dicts.

Minimal stack: structlog (stdout JSON or console)
Configure via: ABTEST_LOG_LEVEL, ABTEST_LOG_FORMAT=json|console
"""
from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

_REDACT_KEYS = frozenset({
    "token", "visitor_token", "tokens",
    "password", "secret", "api_key", "apikey", "authorization",
})

_REDACTED = "[REDACTED]"


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: _REDACTED if str(k).lower() in _REDACT_KEYS else _redact(v)
            for k, v in value.items()
        }
    return value


def _redact_processor(logger: Any, method: str, event_dict: dict) -> dict:
    """Mask sensitive fields, one level of nesting deep or more."""
    for key, value in list(event_dict.items()):
        if key.lower() in _REDACT_KEYS:
            event_dict[key] = _REDACTED
        elif isinstance(value, dict):
            event_dict[key] = _redact(value)
    return event_dict


def _service_fields(service: str, env: str):
    def _processor(logger: Any, method: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", service)
        event_dict.setdefault("env", env)
        return event_dict
    return _processor


# ── Configuration ─────────────────────────────────────────────────────────────

_configured = False


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """
    Install the structlog pipeline and the stdout handler.

    Defaults come from EngineConfig; explicit arguments win. Safe to call
    again, the previous abtest handler is replaced rather than stacked.
    """
    global _configured
    from abtest_sdk.tier0_core.config import get_config

    config = get_config()
    level_name = (level or config.log_level).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    renderer = (
        structlog.dev.ConsoleRenderer()
        if (fmt or config.log_format).lower() == "console"
        else structlog.processors.JSONRenderer()
    )

    shared: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _service_fields(config.app_name, config.environment),
        _redact_processor,
    ]

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name("abtest")
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == "abtest"]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)
    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Return a structured logger, configuring the pipeline on first use.

    Usage:
        log = get_logger(__name__)
        log.info("experiment.impression_recorded", experiment_id="exp-1", variant_id="0")
    """
    if not _configured:
        configure_logging()
    return structlog.get_logger(name or __name__)


__all__ = ["configure_logging", "get_logger"]
