"""Tracing helpers and background-error filtering for the consultant runtime."""

from __future__ import annotations

import asyncio
import logging
import os
from importlib import import_module
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_initialized = False

_SUPPRESSED_MARKERS = ("analytics", "failed to fetch")
_NETWORK_ERRORS = (ConnectionError, TimeoutError)


def _should_capture_sensitive_data() -> bool:
    raw = os.getenv("MAF_TRACING_CAPTURE_SENSITIVE", "true").strip().lower()
    return raw in {"1", "true", "yes", "on"}


def initialize_tracing(*, endpoint: Optional[str] = None, enable_sensitive_data: Optional[bool] = None) -> bool:
    """Configure OpenTelemetry tracing for the agent framework runtime."""

    global _initialized
    if _initialized:
        return False

    otlp_endpoint = endpoint or os.getenv("MAF_OTLP_ENDPOINT", "http://localhost:4317").strip()
    if not otlp_endpoint:
        logger.info("Tracing skipped because no OTLP endpoint is configured.")
        return False

    try:
        observability = import_module("agent_framework.observability")
        observability.setup_observability(
            otlp_endpoint=otlp_endpoint,
            enable_sensitive_data=enable_sensitive_data
            if enable_sensitive_data is not None
            else _should_capture_sensitive_data(),
        )
    except Exception as exc:  # pragma: no cover - tracing is optional
        logger.warning("Tracing initialization failed: %s", exc)
        return False

    _initialized = True
    logger.info("Tracing initialized with OTLP endpoint %s", otlp_endpoint)
    return True


def is_suppressed_background_error(context: Dict[str, Any]) -> bool:
    """True for background noise: analytics, fetch and network failures."""

    exc = context.get("exception")
    if isinstance(exc, _NETWORK_ERRORS):
        return True
    text = " ".join(
        part for part in (str(context.get("message") or ""), str(exc or "")) if part
    ).lower()
    return any(marker in text for marker in _SUPPRESSED_MARKERS)


def install_background_error_filter(loop: asyncio.AbstractEventLoop) -> None:
    """Log known-noisy background errors as warnings instead of failures."""

    previous = loop.get_exception_handler()

    def handler(
        event_loop: asyncio.AbstractEventLoop, context: Dict[str, Any]
    ) -> None:
        if is_suppressed_background_error(context):
            logger.warning(
                "Suppressed background error: %s",
                context.get("exception") or context.get("message"),
            )
            return
        if previous is not None:
            previous(event_loop, context)
        else:
            event_loop.default_exception_handler(context)

    loop.set_exception_handler(handler)
