"""Configuration subsystem for acmeval.

Public API::

    from acmeval.config import get_config, AcmevalConfig

    # At startup:
    AcmevalConfig(config_file="config.yaml")

    # Everywhere else:
    cfg     = get_config()
    polling = cfg.settings.polling                         # typed access
    webroot = cfg.get("challenges.publisher_config.directory")  # dot-path
"""

from acmeval.config.acmeval_config import (
    AcmevalConfig,
    ConfigValidationError,
    get_config,
)
from acmeval.config.settings import (
    AcmevalSettings,
    AuditLogSettings,
    ChallengeSettings,
    LoggingSettings,
    PollingSettings,
    SelfCheckSettings,
)

__all__ = [
    # Core
    "AcmevalConfig",
    # Root
    "AcmevalSettings",
    # Sections
    "AuditLogSettings",
    "ChallengeSettings",
    "ConfigValidationError",
    "LoggingSettings",
    "PollingSettings",
    "SelfCheckSettings",
    "get_config",
]
