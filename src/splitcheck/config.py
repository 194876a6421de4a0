"""Application configuration helpers."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

ENV_FILE_CANDIDATES = (Path(".env"), Path(".env.local"))


class Settings(BaseModel):
    """Global application settings loaded from environment variables or .env files."""

    azure_endpoint: Optional[str] = Field(
        default=None,
        description="Azure Document Intelligence endpoint URL.",
    )
    azure_key: Optional[str] = Field(
        default=None,
        description="Azure Document Intelligence access key.",
    )
    azure_model_id: str = Field(
        default="prebuilt-receipt",
        description="Document Intelligence model used for receipt analysis.",
    )
    azure_api_version: str = Field(
        default="2024-11-30",
        description="Document Intelligence REST API version.",
    )
    azure_poll_interval: float = Field(
        default=1.0,
        description="Seconds between analysis status polls when the service sends no Retry-After.",
    )
    azure_max_polls: int = Field(
        default=60,
        description="Maximum number of status polls before the analysis is abandoned.",
    )
    azure_timeout: float = Field(
        default=60.0,
        description="Overall seconds allowed for one remote analysis, polling included.",
    )
    ocr_default_lang: str = Field(
        default="eng",
        description="Default Tesseract language code for local OCR.",
    )
    ocr_providers: tuple[str, ...] = Field(
        default=("azure", "tesseract"),
        description="Provider chain, tried in order (azure/tesseract).",
    )
    ocr_service_url: Optional[str] = Field(
        default=None,
        description="Base URL of a splitcheck server; when set the remote step calls its /ocr endpoint.",
    )
    ocr_attempt_timeout: Optional[float] = Field(
        default=120.0,
        description="Seconds allowed per provider attempt before falling back (unset disables).",
    )
    reconciliation_tolerance: float = Field(
        default=0.02,
        description="Maximum item-sum vs subtotal difference accepted without review.",
    )
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Largest receipt image accepted by the HTTP endpoints.",
    )
    api_token: Optional[str] = Field(
        default=None,
        description="Bearer token required for authenticated endpoints.",
    )
    log_level: str = Field(default="INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        default="plain",
        description="Logging format (plain/json).",
    )
    log_requests: bool = Field(
        default=True,
        description="Emit request access logs when true.",
    )

    model_config = ConfigDict(frozen=True)

    @property
    def azure_configured(self) -> bool:
        return bool(self.azure_endpoint and self.azure_key)


def _coerce_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_provider_list(value: str) -> tuple[str, ...]:
    names = tuple(name.strip().lower() for name in value.split(",") if name.strip())
    if not names:
        raise ValueError("empty provider list")
    return names


def _parse_timeout(value: str) -> Optional[float]:
    seconds = float(value)
    return seconds if seconds > 0 else None


# Environment variable -> (settings field, converter). Values that fail to convert are ignored.
_ENV_FIELDS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "AZURE_DOC_INTEL_ENDPOINT": ("azure_endpoint", str),
    "AZURE_DOC_INTEL_KEY": ("azure_key", str),
    "SPLITCHECK_AZURE_MODEL_ID": ("azure_model_id", str),
    "SPLITCHECK_AZURE_API_VERSION": ("azure_api_version", str),
    "SPLITCHECK_AZURE_POLL_INTERVAL": ("azure_poll_interval", float),
    "SPLITCHECK_AZURE_MAX_POLLS": ("azure_max_polls", int),
    "SPLITCHECK_AZURE_TIMEOUT": ("azure_timeout", float),
    "SPLITCHECK_OCR_LANG": ("ocr_default_lang", str),
    "SPLITCHECK_OCR_PROVIDERS": ("ocr_providers", _parse_provider_list),
    "SPLITCHECK_OCR_SERVICE_URL": ("ocr_service_url", str),
    "SPLITCHECK_OCR_ATTEMPT_TIMEOUT": ("ocr_attempt_timeout", _parse_timeout),
    "SPLITCHECK_RECONCILIATION_TOLERANCE": ("reconciliation_tolerance", float),
    "SPLITCHECK_MAX_UPLOAD_BYTES": ("max_upload_bytes", int),
    "SPLITCHECK_API_TOKEN": ("api_token", str),
    "SPLITCHECK_LOG_LEVEL": ("log_level", str),
    "SPLITCHECK_LOG_FORMAT": ("log_format", str),
    "SPLITCHECK_LOG_REQUESTS": ("log_requests", _coerce_bool),
}


def _read_env_files(paths: Iterable[Path] = ENV_FILE_CANDIDATES) -> dict[str, str]:
    """Collect ``KEY=value`` pairs from the candidate files; later files win."""

    values: dict[str, str] = {}
    for path in paths:
        if not path.is_file():
            continue
        for raw_line in path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, raw_value = line.split("=", 1)
            values[key.strip()] = raw_value.strip().strip('"').strip("'")
    return values


def _load_from_env() -> dict[str, object]:
    """Load optional overrides from env vars (with .env fallbacks)."""

    file_values = _read_env_files()
    payload: dict[str, object] = {}
    for env_name, (field, convert) in _ENV_FIELDS.items():
        raw = os.environ.get(env_name) or file_values.get(env_name)
        if not raw:
            continue
        try:
            payload[field] = convert(raw)
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", env_name, raw)
    return payload


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings(**_load_from_env())
