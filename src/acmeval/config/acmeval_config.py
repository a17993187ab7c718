"""acmeval configuration loader built on ConfigKit.

Lifecycle::

    # 1. The embedding application creates the instance (once, at startup)
    AcmevalConfig(config_file="/etc/acmeval/config.yaml")

    # 2. Any module retrieves it afterwards
    from acmeval.config import get_config
    cfg = get_config()
    cfg.settings.polling.timeout_seconds  # typed access

    # 3. Extension / dynamic access
    cfg.get("challenges.publisher_config.directory")
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

from configkit import ConfigKit, ConfigKitMeta

from acmeval.challenge.publisher import BUILTIN_PUBLISHERS
from acmeval.config.settings import AcmevalSettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_CLASS_PATH_RE = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)+$",
)

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: AcmevalConfig | None = None


def get_config() -> AcmevalConfig:
    """Return the initialised configuration.

    Raises :class:`RuntimeError` if :class:`AcmevalConfig` has not been
    created yet.
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "AcmevalConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when cross-field validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        """Store *errors* and build a human-readable message."""
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class AcmevalConfig(ConfigKit):
    """Central configuration for HTTP-01 validation.

    Subclasses :class:`configkit.ConfigKit`.  The JSON schema is
    bundled at ``config/schema.json``; users supply only ``config_file``.

    After construction the typed settings tree is available at
    :pyattr:`settings` and the raw dict via :pyattr:`data` /
    :pymeth:`get`.
    """

    def __init__(
        self,
        *,
        config_file: str | Path,
        schema_file: str | Path | None = None,  # noqa: ARG002
    ) -> None:
        """Load, validate and materialise the configuration.

        Parameters
        ----------
        config_file:
            Path to the YAML/JSON configuration file.
        schema_file:
            Ignored.  Exists only to satisfy the
            :class:`ConfigKitMeta` singleton guard.

        """
        global _instance  # noqa: PLW0603

        # Always use the bundled schema regardless of what was passed.
        super().__init__(
            config_file=config_file,
            schema_file=_SCHEMA_PATH,
        )

        self._settings: AcmevalSettings = build_settings(self.data)
        _instance = self

    # -- lifecycle overrides ------------------------------------------------

    def _load(self) -> None:
        """Load config file then resolve ``${VAR}`` env-var references.

        Runs env-var resolution **before** schema validation so that
        substituted values (e.g. ``${LOG_LEVEL:-INFO}``) are checked
        against enum constraints in the schema.
        """
        super()._load()
        _resolve_env_vars(self._data)

    # -- typed access -------------------------------------------------------

    @property
    def settings(self) -> AcmevalSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    # -- cross-field validation ---------------------------------------------

    def additional_checks(self) -> None:  # noqa: C901
        """Semantic & cross-field validation.

        Called automatically by ConfigKit **after** schema validation
        passes.
        """
        errors: list[str] = []
        warnings: list[str] = []

        challenges = self.data.get("challenges") or {}
        polling = self.data.get("polling") or {}
        logging_cfg = self.data.get("logging") or {}

        # -- challenges --
        base_url = challenges.get("base_url", "")
        if base_url.endswith("/"):
            errors.append(
                f"challenges.base_url must not end with '/' (got '{base_url}')",
            )

        publisher = challenges.get("publisher", "file")
        pub_cfg = challenges.get("publisher_config") or {}
        if publisher == "file":
            if not pub_cfg.get("directory"):
                errors.append(
                    "challenges.publisher_config.directory is required "
                    "when challenges.publisher is 'file'",
                )
        elif publisher == "callback":
            for key in ("deploy_script", "cleanup_script"):
                if not pub_cfg.get(key):
                    errors.append(
                        f"challenges.publisher_config.{key} is required "
                        "when challenges.publisher is 'callback'",
                    )
        elif publisher.startswith("ext:"):
            if not _CLASS_PATH_RE.match(publisher[4:]):
                errors.append(
                    f"challenges.publisher '{publisher}' must name a fully "
                    "qualified factory class (e.g. 'ext:mypackage.module.FactoryClass')",
                )
        else:
            errors.append(
                f"challenges.publisher '{publisher}' is unknown; built-in "
                f"options: {sorted(BUILTIN_PUBLISHERS)} or 'ext:...'",
            )

        # -- polling --
        interval = polling.get("interval_seconds", 1)
        max_interval = polling.get("max_interval_seconds", 10)
        if max_interval < interval:
            errors.append(
                f"polling.max_interval_seconds ({max_interval}) must be >= "
                f"polling.interval_seconds ({interval})",
            )
        timeout = polling.get("timeout_seconds", 300)
        if timeout is None:
            warnings.append(
                "polling.timeout_seconds is null; a CA that never leaves "
                "'pending' will block validation indefinitely",
            )
        elif timeout < interval:
            errors.append(
                f"polling.timeout_seconds ({timeout}) must be >= "
                f"polling.interval_seconds ({interval})",
            )

        # -- logging --
        audit = logging_cfg.get("audit") or {}
        if audit.get("file") and audit.get("enabled") is False:
            warnings.append(
                "logging.audit.file is set but logging.audit.enabled is false; "
                "no audit records will be written",
            )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    # -- helpers ------------------------------------------------------------

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None
        ConfigKitMeta.reset()

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        source = self.data.get("_source", "?")
        return f"<AcmevalConfig config_file={source}>"
