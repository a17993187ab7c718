"""Structured logging configuration for acmeval.

Provides JSON and text formatters, a validation-context filter that
injects the domain and token currently being validated into every log
record, and a one-call ``configure_logging`` function driven by config
settings.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from acmeval.config.settings import LoggingSettings

# Attributes that are part of the standard LogRecord; everything
# else is considered "extra" and gets included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
        # Our own well-known context attributes (handled explicitly):
        "domain",
        "token",
    }
)

_current_domain: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "acmeval_domain",
    default=None,
)
_current_token: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "acmeval_token",
    default=None,
)


@contextlib.contextmanager
def validation_context(domain: str) -> Iterator[None]:
    """Tag every record logged inside the block with *domain*."""
    domain_reset = _current_domain.set(domain)
    token_reset = _current_token.set(None)
    try:
        yield
    finally:
        _current_token.reset(token_reset)
        _current_domain.reset(domain_reset)


def bind_token(token: str) -> None:
    """Attach the selected challenge token to the active context."""
    _current_token.set(token)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for production logging.

    Every record becomes a single JSON object on one line containing
    the standard fields plus any *extra* attributes passed by the
    caller or injected by filters.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=UTC,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        # Validation context (set by ValidationContextFilter)
        domain = getattr(record, "domain", None)
        if domain is not None:
            data["domain"] = domain

        token = getattr(record, "token", None)
        if token is not None:
            data["token"] = token

        # Caller-supplied extra fields
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development / console use."""

    _FMT = "%(asctime)s %(levelname)-8s [%(domain)s] %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class ValidationContextFilter(logging.Filter):
    """Inject the active validation context into every log record.

    Adds ``domain`` and ``token`` from :func:`validation_context` /
    :func:`bind_token`.  Outside a validation ``domain`` falls back to
    ``"-"`` and ``token`` to ``None``.
    """

    CONTEXT_ATTRS = frozenset({"domain", "token"})

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "domain"):
            record.domain = _current_domain.get() or "-"  # type: ignore[attr-defined]
        if not hasattr(record, "token"):
            record.token = _current_token.get()  # type: ignore[attr-defined]
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``acmeval`` logger hierarchy from settings.

    Replaces any previously installed handlers with properly formatted
    output.  Sets up an optional audit logger if
    ``settings.audit.enabled``.

    Returns the root ``acmeval`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    # ── Root acmeval logger ─────────────────────────────────────────
    root = logging.getLogger("acmeval")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()

    ctx_filter = ValidationContextFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(ctx_filter)
    root.addHandler(console)

    # ── Audit logger ────────────────────────────────────────────────
    audit = logging.getLogger("acmeval.audit")
    audit.handlers.clear()
    audit.disabled = not settings.audit.enabled
    if settings.audit.enabled:
        audit.setLevel(logging.INFO)

        if settings.audit.file:
            try:
                from logging.handlers import RotatingFileHandler

                fh = RotatingFileHandler(
                    settings.audit.file,
                    maxBytes=settings.audit.max_file_size_bytes,
                    backupCount=settings.audit.backup_count,
                )
                # Audit logs are always structured JSON
                fh.setFormatter(StructuredFormatter())
                fh.addFilter(ctx_filter)
                audit.addHandler(fh)
            except OSError as exc:
                root.warning(
                    "Could not open audit log file %s: %s",
                    settings.audit.file,
                    exc,
                )

    return root
