"""Account-key JWK utilities (RFC 7517 / 7638) and key authorization.

Key loading goes through the ``cryptography`` library.  Only RSA
account keys are supported.

Security note:
    The serialized JWK is digested byte-for-byte.  Member order, the
    absence of whitespace and the unpadded base64url encoding are part
    of the protocol contract and must not change.
"""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

if TYPE_CHECKING:
    from typing import Any


# --- Base64url helpers (RFC 7515 S2) -------------------------------------


def b64url_decode(s: str) -> bytes:
    """Decode a base64url string (no padding required).

    Parameters
    ----------
    s:
        Base64url-encoded string.

    Returns
    -------
    bytes
        Decoded bytes.

    """
    remainder = len(s) % 4
    if remainder:
        s += "=" * (4 - remainder)
    return base64.urlsafe_b64decode(s)


def b64url_encode(b: bytes) -> str:
    """Encode bytes to base64url without padding.

    Parameters
    ----------
    b:
        Raw bytes to encode.

    Returns
    -------
    str
        Base64url-encoded string.

    """
    return base64.urlsafe_b64encode(b).rstrip(b"=").decode("ascii")


def _int_to_bytes(value: int) -> bytes:
    """Return the minimal big-endian encoding of a non-negative integer."""
    length = max(1, (value.bit_length() + 7) // 8)
    return value.to_bytes(length, "big")


# --- Account key --------------------------------------------------------


@dataclass(frozen=True)
class AccountKeyDetails:
    """Public components of the RSA account key.

    Attributes
    ----------
    n:
        Big-endian modulus bytes.
    e:
        Big-endian public exponent bytes.

    """

    n: bytes
    e: bytes

    def __post_init__(self) -> None:
        if not self.n or not self.e:
            msg = "RSA account key requires non-empty 'n' and 'e'"
            raise ValueError(msg)

    @classmethod
    def from_public_key(
        cls,
        key: rsa.RSAPublicKey | rsa.RSAPrivateKey,
    ) -> AccountKeyDetails:
        """Extract ``n`` and ``e`` from a ``cryptography`` RSA key.

        A private key is reduced to its public half first.
        """
        if isinstance(key, rsa.RSAPrivateKey):
            key = key.public_key()
        if not isinstance(key, rsa.RSAPublicKey):
            msg = f"Account key must be RSA, got {type(key).__name__}"
            raise TypeError(msg)
        numbers = key.public_numbers()
        return cls(n=_int_to_bytes(numbers.n), e=_int_to_bytes(numbers.e))

    @classmethod
    def from_pem(
        cls,
        pem: bytes,
        password: bytes | None = None,
    ) -> AccountKeyDetails:
        """Load an RSA public or private key from PEM bytes."""
        if b"PRIVATE KEY" in pem:
            key = serialization.load_pem_private_key(pem, password=password)
        else:
            key = serialization.load_pem_public_key(pem)
        return cls.from_public_key(key)  # type: ignore[arg-type]

    def to_jwk(self) -> dict[str, str]:
        """Return the public JWK with members in ``e, kty, n`` order."""
        return {
            "e": b64url_encode(self.e),
            "kty": "RSA",
            "n": b64url_encode(self.n),
        }


# --- JWK thumbprint (RFC 7638) -------------------------------------------


def canonical_jwk_json(jwk_dict: dict[str, Any]) -> str:
    """Serialize the required RSA JWK members canonically.

    Members are emitted in lexicographic order with no whitespace, which
    for RSA is exactly ``{"e":...,"kty":"RSA","n":...}``.
    """
    kty = jwk_dict.get("kty")
    if kty != "RSA":
        msg = f"Cannot compute thumbprint for kty '{kty}'"
        raise ValueError(msg)

    canonical = {
        "e": jwk_dict["e"],
        "kty": "RSA",
        "n": jwk_dict["n"],
    }
    return json.dumps(
        canonical,
        sort_keys=True,
        separators=(",", ":"),
    )


def compute_thumbprint(jwk_dict: dict[str, Any]) -> str:
    """Compute the RFC 7638 JWK Thumbprint using SHA-256.

    Parameters
    ----------
    jwk_dict:
        The RSA JWK dictionary.

    Returns
    -------
    str
        Base64url-encoded thumbprint.

    """
    digest = hashlib.sha256(
        canonical_jwk_json(jwk_dict).encode("ascii"),
    ).digest()
    return b64url_encode(digest)


# --- Key authorization (RFC 8555 S8.1) ------------------------------------


def key_authorization(token: str, account_key: AccountKeyDetails) -> str:
    """Compute the key authorization string: ``token.thumbprint``.

    Parameters
    ----------
    token:
        The challenge token.
    account_key:
        The account's public RSA components.

    Returns
    -------
    str
        The key authorization string.

    """
    thumbprint = compute_thumbprint(account_key.to_jwk())
    return f"{token}.{thumbprint}"
