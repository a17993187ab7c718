"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from acmeval.config import get_config

    polling = get_config().settings.polling
    print(polling.interval_seconds, polling.timeout_seconds)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChallengeSettings:
    """Where tokens are published and the URL they are served from."""

    base_url: str
    publisher: str
    publisher_config: dict[str, Any]


def _build_challenges(data: dict | None) -> ChallengeSettings:
    d = data or {}
    return ChallengeSettings(
        base_url=d.get("base_url", ""),
        publisher=d.get("publisher", "file"),
        publisher_config=dict(d.get("publisher_config") or {}),
    )


# ---------------------------------------------------------------------------
# Self-check
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SelfCheckSettings:
    """HTTP fetch of the published token before notifying the CA."""

    timeout_seconds: int
    max_response_bytes: int


def _build_self_check(data: dict | None) -> SelfCheckSettings:
    d = data or {}
    return SelfCheckSettings(
        timeout_seconds=d.get("timeout_seconds", 10),
        max_response_bytes=d.get("max_response_bytes", 1048576),
    )


# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PollingSettings:
    """Pacing and deadline of the authorization poll loop."""

    interval_seconds: float
    backoff_factor: float
    max_interval_seconds: float
    timeout_seconds: float | None


def _build_polling(data: dict | None) -> PollingSettings:
    d = data or {}
    return PollingSettings(
        interval_seconds=d.get("interval_seconds", 1),
        backoff_factor=d.get("backoff_factor", 1.0),
        max_interval_seconds=d.get("max_interval_seconds", 10),
        timeout_seconds=d.get("timeout_seconds", 300),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditLogSettings:
    """One record per validation outcome, optionally to a rotating file."""

    enabled: bool
    file: str | None
    max_file_size_bytes: int
    backup_count: int


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format, audit)."""

    level: str
    format: str
    audit: AuditLogSettings


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    a = d.get("audit") or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
        audit=AuditLogSettings(
            enabled=a.get("enabled", True),
            file=a.get("file"),
            max_file_size_bytes=a.get("max_file_size_bytes", 104857600),
            backup_count=a.get("backup_count", 10),
        ),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmevalSettings:
    """Root settings tree."""

    challenges: ChallengeSettings
    self_check: SelfCheckSettings
    polling: PollingSettings
    logging: LoggingSettings


def build_settings(data: dict) -> AcmevalSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`AcmevalConfig` initialization after
    schema validation and environment-variable resolution.
    """
    return AcmevalSettings(
        challenges=_build_challenges(data.get("challenges")),
        self_check=_build_self_check(data.get("self_check")),
        polling=_build_polling(data.get("polling")),
        logging=_build_logging(data.get("logging")),
    )
