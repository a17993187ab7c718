"""Logging subsystem for acmeval.

Public API::

    from acmeval.logging import configure_logging

    configure_logging(settings.logging)
"""

from acmeval.logging.sanitize import sanitize_for_logs
from acmeval.logging.setup import bind_token, configure_logging, validation_context

__all__ = [
    "bind_token",
    "configure_logging",
    "sanitize_for_logs",
    "validation_context",
]
