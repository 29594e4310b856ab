"""Tracing helpers for the RFP builder runtime."""

from __future__ import annotations

import logging
import os
from typing import Optional

from agent_framework.observability import setup_observability

from .config import AppSettings

logger = logging.getLogger(__name__)

_initialized = False


def _should_capture_sensitive_data() -> bool:
    raw = os.getenv("RFP_TRACING_CAPTURE_SENSITIVE", "false").strip().lower()
    return raw in {"1", "true", "yes", "on"}


def configure_tracing(
    settings: AppSettings,
    *,
    enable_sensitive_data: Optional[bool] = None,
) -> bool:
    """Enable OpenTelemetry export when ``settings.otlp_endpoint`` is set."""

    global _initialized
    if _initialized:
        return False

    endpoint = (settings.otlp_endpoint or "").strip()
    if not endpoint:
        logger.debug("Tracing skipped because no OTLP endpoint is configured.")
        return False

    if enable_sensitive_data is None:
        enable_sensitive_data = _should_capture_sensitive_data()
    try:
        setup_observability(
            otlp_endpoint=endpoint,
            enable_sensitive_data=enable_sensitive_data,
        )
    except Exception as exc:  # noqa: BLE001 # pylint: disable=broad-except
        logger.warning("Tracing initialization failed: %s", exc)
        return False

    _initialized = True
    logger.info("Tracing initialized with OTLP endpoint %s", endpoint)
    return True
