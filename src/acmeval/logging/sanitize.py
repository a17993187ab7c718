"""Sensitive data sanitization for log output.

Provides :func:`sanitize_for_logs` which redacts key material (JWK
members) and key authorizations from data structures before they are
written to log files or the audit log.  Only metadata (key type,
challenge type, status) is preserved.
"""

from __future__ import annotations

from typing import Any

# JWK fields that contain raw key material
_JWK_SECRET_FIELDS = frozenset({"n", "e", "x", "y", "d", "p", "q", "dp", "dq", "qi", "k"})

# Challenge members that echo the proof back
_PROOF_FIELDS = frozenset({"keyAuthorization"})


def sanitize_jwk(jwk: dict) -> dict:
    """Return a copy of *jwk* with key material replaced by ``[REDACTED]``.

    Preserves ``kty``, ``crv``, ``use``, ``alg``, ``kid``, and ``key_ops``
    for diagnostic context.
    """
    result = {}
    for key, value in jwk.items():
        if key in _JWK_SECRET_FIELDS:
            result[key] = "[REDACTED]"
        else:
            result[key] = value
    return result


def sanitize_for_logs(data: Any) -> Any:  # noqa: ANN401
    """Recursively sanitize sensitive material in *data*.

    Handles dicts (JWK-like structures, challenge objects), lists and
    tuples.  Non-sensitive data passes through unchanged.
    """
    if isinstance(data, dict):
        # Detect JWK-like dicts by presence of "kty"
        if "kty" in data:
            return sanitize_jwk(data)
        return {
            k: "[REDACTED]" if k in _PROOF_FIELDS else sanitize_for_logs(v)
            for k, v in data.items()
        }

    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_for_logs(item) for item in data)

    return data
