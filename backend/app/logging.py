"""Shared structlog configuration for the API process."""

from __future__ import annotations

import logging
import re
import sys
from typing import IO, Any

import structlog

from app.config import settings

_LOG_LEVEL_MAP: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Keys whose values never reach log output
SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "storefront_token",
        "api_key",
        "api_secret",
        "secret",
        "token",
        "auth",
        "password",
    }
)

# Third-party engine names are hidden from merchants reading logs and from
# client-facing error messages.
_ENGINE_PATTERNS = [
    re.compile(r"Google\s*(Gen|Generative)*\s*AI", re.IGNORECASE),
    re.compile(r"Gemini\s*API", re.IGNORECASE),
    re.compile(r"gemini-[\w.\-]+", re.IGNORECASE),
    re.compile(r"Replicate\s*API", re.IGNORECASE),
    re.compile(r"SeeDream", re.IGNORECASE),
]
ENGINE_PLACEHOLDER = "[AI Engine]"


def sanitize_message(message: str) -> str:
    """Replace third-party engine names with a neutral placeholder."""
    for pattern in _ENGINE_PATTERNS:
        message = pattern.sub(ENGINE_PLACEHOLDER, message)
    return message


def redact_sensitive(
    _logger: Any, _method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor: redact secrets and sanitize engine names."""
    for key in list(event_dict):
        if key.lower() in SENSITIVE_KEYS and event_dict[key]:
            event_dict[key] = "[REDACTED]"
        elif isinstance(event_dict[key], str):
            event_dict[key] = sanitize_message(event_dict[key])
    return event_dict


class _MirroredStream:
    """stdout plus an optional append-only copy on disk.

    A file that cannot be opened or written is dropped; stdout keeps working.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._sink: IO[str] | None = None
        try:
            self._sink = open(path, "a", encoding="utf-8")  # noqa: SIM115
        except OSError as exc:
            self._disable(f"cannot open {path!r}: {exc}")

    def _disable(self, reason: str) -> None:
        self._sink = None
        # structlog is not configured yet, so report straight to stderr
        sys.stderr.write(f"log file disabled ({reason}); logging to stdout only\n")

    def write(self, text: str) -> None:
        sys.stdout.write(text)
        if self._sink is None:
            return
        try:
            self._sink.write(text)
            self._sink.flush()
        except (OSError, ValueError) as exc:
            self._disable(f"write to {self._path!r} failed: {exc}")

    def flush(self) -> None:
        sys.stdout.flush()


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_sensitive,
    ]


def configure_logging() -> None:
    """Set up structlog for the process.

    Development gets the colored console renderer; every other environment
    emits JSON lines. ``LOG_FILE`` mirrors output to a file.
    """
    processors = _shared_processors()
    if settings.environment == "development":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    stream = _MirroredStream(settings.log_file) if settings.log_file else sys.stdout
    min_level = _LOG_LEVEL_MAP.get(settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),  # type: ignore[arg-type]
        cache_logger_on_first_use=True,
    )
