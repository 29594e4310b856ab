"""Configuration helpers for the RFP builder service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from importlib import import_module
from pathlib import Path
from typing import Optional

PLACEHOLDER_KEYS = {"", "placeholder"}
DEFAULT_EMAIL_SENDER = "AI RFP Builder <rfp@example.com>"


@dataclass(slots=True)
class ModelSettings:
    """Provider credentials for the optional language model."""

    provider: str
    model: str
    endpoint: Optional[str]
    api_key: str
    api_version: Optional[str]


@dataclass(slots=True)
class AppSettings:
    """Runtime settings for the service, the CLI and the storage layer."""

    model: Optional[ModelSettings]
    output_dir: Path
    archive_log: Path
    redis_url: Optional[str]
    slack_webhook_url: Optional[str]
    llm_timeout: int
    document_timeout: int
    history_window: int
    otlp_endpoint: Optional[str] = None
    resend_api_key: Optional[str] = None
    email_sender: str = DEFAULT_EMAIL_SENDER

    @property
    def model_enabled(self) -> bool:
        return self.model is not None

    @classmethod
    def load(cls) -> "AppSettings":
        """Read ``RFP_*`` variables, after loading a local .env file."""
        _ensure_dotenv()
        output_dir = Path(os.getenv("RFP_OUTPUT_DIR", "outputs"))
        output_dir.mkdir(parents=True, exist_ok=True)
        archive_log = Path(
            os.getenv(
                "RFP_ARCHIVE_JSONL",
                str(output_dir / "records.jsonl"),
            )
        )
        archive_log.parent.mkdir(parents=True, exist_ok=True)
        redis_url: Optional[str] = os.getenv(
            "RFP_REDIS_URL", "redis://localhost:6379/0"
        )
        if redis_url is not None and not redis_url.strip():
            redis_url = None
        slack_webhook_url = os.getenv("RFP_SLACK_WEBHOOK_URL") or None
        otlp_endpoint = os.getenv("RFP_OTLP_ENDPOINT") or None
        resend_api_key = os.getenv("RFP_RESEND_API_KEY", "").strip()
        return cls(
            model=_load_model_settings(),
            output_dir=output_dir,
            archive_log=archive_log,
            redis_url=redis_url,
            slack_webhook_url=slack_webhook_url,
            llm_timeout=_positive_int("RFP_LLM_TIMEOUT", "25"),
            document_timeout=_positive_int("RFP_DOCUMENT_TIMEOUT", "55"),
            history_window=_positive_int("RFP_HISTORY_WINDOW", "8"),
            otlp_endpoint=otlp_endpoint,
            resend_api_key=(
                None if resend_api_key in PLACEHOLDER_KEYS else resend_api_key
            ),
            email_sender=os.getenv("RFP_EMAIL_SENDER", DEFAULT_EMAIL_SENDER),
        )


def _load_model_settings() -> Optional[ModelSettings]:
    """Return model settings, or ``None`` when no usable API key is set.

    A missing key is not an error: the service then runs every
    conversation turn and document through the deterministic paths.
    """

    api_key = os.getenv("RFP_MODEL_API_KEY", "")
    if api_key.strip() in PLACEHOLDER_KEYS:
        return None
    return ModelSettings(
        provider=os.getenv("RFP_MODEL_PROVIDER", "anthropic"),
        model=os.getenv("RFP_MODEL", "claude-sonnet-4-20250514"),
        endpoint=os.getenv("RFP_MODEL_ENDPOINT"),
        api_key=api_key.strip(),
        api_version=os.getenv("RFP_MODEL_API_VERSION"),
    )


def _positive_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc
    if value < 1:
        raise RuntimeError(f"{name} must be at least 1")
    return value


def _ensure_dotenv() -> None:
    """Populate os.environ from .env before any variable is read."""

    try:
        dotenv_module = import_module("dotenv")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        raise RuntimeError(
            "python-dotenv is required. Install with `pip install "
            "python-dotenv`."
        ) from exc

    load_dotenv = getattr(dotenv_module, "load_dotenv")
    load_dotenv()
