"""Enumerated types for ACME HTTP-01 validation.

All enums inherit from :class:`enum.StrEnum` so their ``.value`` is the
plain string the CA puts on the wire and comparisons against raw JSON
values work directly.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class AuthorizationStatus(StrEnum):
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"
    DEACTIVATED = "deactivated"
    EXPIRED = "expired"
    REVOKED = "revoked"


# ---------------------------------------------------------------------------
# Challenge types
# ---------------------------------------------------------------------------


class ChallengeType(StrEnum):
    HTTP_01 = "http-01"
    DNS_01 = "dns-01"
    TLS_ALPN_01 = "tls-alpn-01"
