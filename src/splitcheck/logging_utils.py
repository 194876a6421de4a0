"""Logging configuration with redaction of API tokens and provider keys."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Iterable, List, Sequence

REDACTED = "[redacted]"

# Each pattern keeps group 1 (the header or parameter name) and masks group 2.
_KEY_PATTERNS = (
    re.compile(r"(Bearer\s+)([A-Za-z0-9\-._~+/=]+)", re.IGNORECASE),
    re.compile(r"(api_token=)([^&\s]+)", re.IGNORECASE),
    re.compile(r"(X-API-Key['\"]?[=:]\s*['\"]?)([^&\s'\"]+)", re.IGNORECASE),
    re.compile(r"(Ocp-Apim-Subscription-Key['\"]?[=:]\s*['\"]?)([^&\s'\"]+)", re.IGNORECASE),
)

# Record attributes copied into JSON output when a caller passes them via ``extra``.
_JSON_EXTRA_FIELDS = ("request_id", "provider")

_PLAIN_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def redact(value: str, secrets: Sequence[str] = ()) -> str:
    """Mask auth header values and any of ``secrets`` appearing in ``value``."""

    for pattern in _KEY_PATTERNS:
        value = pattern.sub(r"\1" + REDACTED, value)
    for secret in secrets:
        if secret:
            value = value.replace(secret, REDACTED)
    return value


class SensitiveDataFilter(logging.Filter):
    """Filter that redacts configured secrets and auth headers from log records."""

    def __init__(self, secrets: Iterable[str]):
        super().__init__()
        self._secrets: List[str] = [secret.strip() for secret in secrets if secret and secret.strip()]

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - standard interface
        message = record.getMessage()
        sanitized = redact(message, self._secrets)
        if sanitized != message:
            record.msg = sanitized
            record.args = ()

        if self._secrets:
            for key, value in list(vars(record).items()):
                if key not in {"msg", "args"} and isinstance(value, str):
                    setattr(record, key, redact(value, self._secrets))
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, carrying request and provider context when present."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - override
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _JSON_EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value:
                payload[field] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info

        return json.dumps(payload, ensure_ascii=True)


def configure_logging(level_name: str, fmt: str, secrets: Iterable[str]) -> None:
    """Configure root logging with optional JSON output and secret redaction.

    uvicorn loggers follow the configured level; ``httpx`` never logs below WARNING
    because its request lines include provider URLs.
    """

    numeric_level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler()
    if (fmt or "plain").lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
    redaction = SensitiveDataFilter(secrets)
    handler.addFilter(redaction)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)
    logging.captureWarnings(True)

    levels = {
        "uvicorn": numeric_level,
        "uvicorn.error": numeric_level,
        "uvicorn.access": numeric_level,
        "httpx": max(numeric_level, logging.WARNING),
    }
    for name, level in levels.items():
        logger = logging.getLogger(name)
        logger.handlers = []
        logger.setLevel(level)
        logger.propagate = True
        logger.addFilter(redaction)
