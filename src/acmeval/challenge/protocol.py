"""ACME protocol client boundary.

The orchestrator does not speak ACME itself.  It drives any object that
satisfies :class:`ProtocolClient`; the value types below are what such a
client hands back.  ``from_json`` helpers let an adapter build them from
decoded CA responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ChallengeOffer:
    """One challenge offered inside an authorization."""

    type: str
    token: str
    uri: str
    status: str | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> ChallengeOffer:
        # ACME v1 calls the challenge URL ``uri``, RFC 8555 calls it ``url``
        return cls(
            type=data.get("type", ""),
            token=data.get("token", ""),
            uri=data.get("uri") or data.get("url", ""),
            status=data.get("status"),
        )


@dataclass(frozen=True)
class Authorization:
    """CA response to an authorization request.

    Attributes
    ----------
    challenges:
        Offers in the order the CA listed them.
    raw:
        The decoded response body, kept for diagnostics.

    """

    challenges: tuple[ChallengeOffer, ...]
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Authorization:
        return cls(
            challenges=tuple(ChallengeOffer.from_json(c) for c in data.get("challenges") or ()),
            raw=data,
        )


@dataclass(frozen=True)
class PollResult:
    """Status snapshot returned by the CA.

    ``status`` is ``None`` when the response carried no (or an empty)
    status member.
    """

    status: str | None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_json(cls, data: dict[str, Any] | None) -> PollResult:
        data = data or {}
        return cls(status=data.get("status") or None, raw=data)


@runtime_checkable
class ProtocolClient(Protocol):
    """Signed-request ACME client used by the orchestrator.

    Exceptions raised by an implementation propagate to the caller of
    :meth:`~acmeval.challenge.orchestrator.ChallengeOrchestrator.validate`
    unchanged.
    """

    def auth(self, domain: str) -> tuple[Authorization, str]:
        """Request an authorization; return it with its Location URI."""
        ...

    def challenge(self, uri: str, token: str, key_authorization: str) -> PollResult:
        """Tell the CA the proof for *token* is ready at *uri*."""
        ...

    def request(self, url: str, method: str) -> PollResult:
        """Perform a generic authenticated request against *url*."""
        ...
