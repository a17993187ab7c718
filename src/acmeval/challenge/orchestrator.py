"""HTTP-01 challenge orchestrator.

Drives one domain through the full proof-of-control exchange:

1. prepare the publishing target (challenges directory)
2. request an authorization from the CA
3. pick the first ``http-01`` offer
4. compute the key authorization for the account key
5. publish the token
6. fetch it back over HTTP (self-check)
7. tell the CA the proof is ready
8. poll the authorization until it leaves ``pending``

The published token is a scoped resource: whichever way steps 6-8 end,
it is removed before :meth:`ChallengeOrchestrator.validate` returns or
raises.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from acmeval.challenge.errors import (
    NoHttpChallengeAvailable,
    PollingTimedOut,
    RemoteCheckFailed,
    SelfCheckFailed,
    TokenDeleteFailed,
    ValidationCancelled,
    ValidationError,
)
from acmeval.challenge.fetcher import FetchError, TokenFetcher, UrllibTokenFetcher
from acmeval.challenge.polling import PollPolicy
from acmeval.challenge.publisher import load_token_publisher
from acmeval.core.jwk import key_authorization
from acmeval.core.types import AuthorizationStatus, ChallengeType
from acmeval.logging.sanitize import sanitize_for_logs
from acmeval.logging.setup import bind_token, validation_context

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from acmeval.challenge.protocol import (
        Authorization,
        ChallengeOffer,
        PollResult,
        ProtocolClient,
    )
    from acmeval.challenge.publisher import TokenPublisher
    from acmeval.config.settings import AcmevalSettings
    from acmeval.core.jwk import AccountKeyDetails

log = logging.getLogger(__name__)
audit_log = logging.getLogger("acmeval.audit")


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of a successful validation.

    Attributes
    ----------
    domain:
        The validated domain.
    token:
        Token of the HTTP-01 challenge that was answered.
    status:
        Terminal authorization status reported by the CA.
    polls:
        Number of re-poll requests issued against the Location.
    location:
        URI of the authorization resource.

    """

    domain: str
    token: str
    status: str
    polls: int
    location: str


def select_http_challenge(authorization: Authorization) -> ChallengeOffer:
    """Return the first ``http-01`` offer in CA order.

    Raises
    ------
    NoHttpChallengeAvailable
        If the authorization offers no HTTP-01 challenge.

    """
    for offer in authorization.challenges:
        if offer.type == ChallengeType.HTTP_01:
            return offer
    raw = authorization.raw or {"challenges": [asdict(c) for c in authorization.challenges]}
    raise NoHttpChallengeAvailable(raw)


class PublishedToken:
    """Publish a token on entry and remove it on every exit path.

    A removal failure while another exception is propagating is attached
    to that exception (``cleanup_error`` plus a note) so the original
    failure stays the one the caller sees.  A removal failure after a
    clean exit is raised as :class:`TokenDeleteFailed`.
    """

    def __init__(
        self,
        publisher: TokenPublisher,
        domain: str,
        token: str,
        content: str,
    ) -> None:
        self._publisher = publisher
        self.domain = domain
        self.token = token
        self.content = content
        self.location: str | None = None

    def __enter__(self) -> PublishedToken:
        self.location = self._publisher.publish(self.domain, self.token, self.content)
        log.info("Published HTTP-01 token %s at %s", self.token, self.location)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            self._publisher.remove(self.domain, self.token)
        except Exception as cleanup_exc:
            if exc is None:
                if isinstance(cleanup_exc, TokenDeleteFailed):
                    raise
                raise TokenDeleteFailed(self.location or self.token) from cleanup_exc
            log.error(
                "Could not remove token %s after failure: %s",
                self.token,
                cleanup_exc,
            )
            if isinstance(exc, ValidationError):
                exc.cleanup_error = cleanup_exc
            exc.add_note(f"token cleanup also failed: {cleanup_exc}")
            return
        log.debug("Removed HTTP-01 token %s", self.token)


def _wait_for_cancel(cancel: threading.Event, seconds: float) -> bool:
    """Block for *seconds*; return ``True`` if *cancel* was set meanwhile."""
    return cancel.wait(seconds)


class ChallengeOrchestrator:
    """Validate domain control with the ACME HTTP-01 challenge.

    Holds no per-validation state, so one instance may serve concurrent
    :meth:`validate` calls if its collaborators are thread-safe.

    Parameters
    ----------
    client:
        ACME protocol client (``auth`` / ``challenge`` / ``request``).
    publisher:
        Where the key authorization is written.
    fetcher:
        HTTP client used for the self-check.
    base_url:
        Public URL of the challenges directory; the token is appended
        as ``<base_url>/<token>``.
    poll_policy:
        Interval, backoff and deadline for polling.  Defaults to a
        fixed one-second interval with a five-minute deadline.
    wait:
        ``wait(cancel_event, seconds) -> cancelled`` used between polls.
    clock:
        Monotonic time source used for the poll deadline.

    """

    def __init__(
        self,
        client: ProtocolClient,
        publisher: TokenPublisher,
        fetcher: TokenFetcher,
        *,
        base_url: str,
        poll_policy: PollPolicy | None = None,
        wait: Callable[[threading.Event, float], bool] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._client = client
        self._publisher = publisher
        self._fetcher = fetcher
        self._base_url = base_url.rstrip("/")
        self._policy = poll_policy or PollPolicy()
        self._wait = wait or _wait_for_cancel
        self._clock = clock or time.monotonic

    @classmethod
    def from_settings(
        cls,
        settings: AcmevalSettings,
        client: ProtocolClient,
    ) -> ChallengeOrchestrator:
        """Wire publisher, fetcher and poll policy from configuration."""
        publisher = load_token_publisher(
            settings.challenges.publisher,
            settings.challenges.publisher_config,
        )
        fetcher = UrllibTokenFetcher(
            timeout_seconds=settings.self_check.timeout_seconds,
            max_response_bytes=settings.self_check.max_response_bytes,
        )
        return cls(
            client,
            publisher,
            fetcher,
            base_url=settings.challenges.base_url,
            poll_policy=PollPolicy.from_settings(settings.polling),
        )

    def token_url(self, token: str) -> str:
        return f"{self._base_url}/{token}"

    # -- public API ---------------------------------------------------------

    def validate(
        self,
        domain: str,
        account_key: AccountKeyDetails,
        *,
        cancel: threading.Event | None = None,
    ) -> ValidationOutcome:
        """Prove control of *domain* to the CA.

        Parameters
        ----------
        domain:
            The hostname to validate.
        account_key:
            Public RSA components of the ACME account key.
        cancel:
            Optional event; setting it aborts polling with
            :class:`ValidationCancelled` after the token is removed.

        Returns
        -------
        ValidationOutcome
            On success.

        Raises
        ------
        ValidationError
            A subclass naming the failed step.  Exceptions from the
            protocol client propagate unchanged.

        """
        with validation_context(domain):
            try:
                outcome = self._run(domain, account_key, cancel or threading.Event())
            except ValidationError as exc:
                audit_log.warning(
                    "HTTP-01 validation failed for %s: %s",
                    domain,
                    exc.code,
                    extra={
                        "event": "challenge.failed",
                        "code": exc.code,
                        "detail": exc.detail,
                        "context": sanitize_for_logs(exc.context),
                    },
                )
                raise
            except Exception as exc:
                audit_log.warning(
                    "HTTP-01 validation aborted for %s by protocol error: %s",
                    domain,
                    exc,
                    extra={
                        "event": "challenge.failed",
                        "code": "protocol_error",
                        "detail": str(exc),
                    },
                )
                raise

            audit_log.info(
                "HTTP-01 validation succeeded for %s",
                domain,
                extra={
                    "event": "challenge.valid",
                    "status": outcome.status,
                    "polls": outcome.polls,
                },
            )
            return outcome

    # -- pipeline -----------------------------------------------------------

    def _run(
        self,
        domain: str,
        account_key: AccountKeyDetails,
        cancel: threading.Event,
    ) -> ValidationOutcome:
        self._publisher.prepare()

        authorization, location = self._client.auth(domain)
        log.debug("Authorization for %s at %s", domain, location)

        try:
            offer = select_http_challenge(authorization)
        except NoHttpChallengeAvailable as exc:
            log.error(
                "CA offered no http-01 challenge for %s: %s",
                domain,
                sanitize_for_logs(exc.raw_response),
            )
            raise
        bind_token(offer.token)

        key_authz = key_authorization(offer.token, account_key)

        with PublishedToken(self._publisher, domain, offer.token, key_authz):
            self._self_check(offer.token, key_authz)

            result = self._client.challenge(offer.uri, offer.token, key_authz)
            log.info("Submitted HTTP-01 challenge for %s", domain)

            status, polls = self._poll(result, location, cancel)

        log.info(
            "HTTP-01 validation succeeded for %s (status %s after %d polls)",
            domain,
            status,
            polls,
        )
        return ValidationOutcome(
            domain=domain,
            token=offer.token,
            status=status,
            polls=polls,
            location=location,
        )

    def _self_check(self, token: str, expected: str) -> None:
        url = self.token_url(token)
        try:
            body = self._fetcher.fetch(url)
        except FetchError as exc:
            log.warning("Self-check could not read %s: %s", url, exc.detail)
            raise SelfCheckFailed(url, exc.detail) from exc

        if not secrets.compare_digest(body.strip().encode(), expected.encode()):
            log.warning("Self-check content mismatch at %s", url)
            raise SelfCheckFailed(url)
        log.debug("Self-check passed for %s", url)

    def _poll(
        self,
        result: PollResult,
        location: str,
        cancel: threading.Event,
    ) -> tuple[str, int]:
        """Re-read the authorization until it leaves ``pending``.

        Returns the terminal status and the number of re-polls issued.
        """
        started = self._clock()
        delays = self._policy.delays()
        polls = 0

        while True:
            status = result.status
            if not status or status == AuthorizationStatus.INVALID:
                log.warning(
                    "CA reported %s for %s",
                    status or "no status",
                    location,
                    extra=_problem_extra(result.raw),
                )
                raise RemoteCheckFailed(status)
            if status != AuthorizationStatus.PENDING:
                return status, polls

            elapsed = self._clock() - started
            if self._policy.expired(elapsed):
                raise PollingTimedOut(elapsed)

            delay = next(delays)
            if self._policy.timeout_seconds is not None:
                delay = min(delay, self._policy.timeout_seconds - elapsed)
            if self._wait(cancel, delay):
                log.info("Validation cancelled while polling %s", location)
                raise ValidationCancelled()

            result = self._client.request(location, "GET")
            polls += 1
            log.debug("Poll %d of %s: %s", polls, location, result.status)


def _problem_extra(raw: dict[str, Any]) -> dict[str, Any]:
    """Pull the CA's problem document, if any, into log extras."""
    challenges = raw.get("challenges") or ()
    errors = [c["error"] for c in challenges if isinstance(c, dict) and c.get("error")]
    if raw.get("error"):
        errors.insert(0, raw["error"])
    return {"ca_errors": sanitize_for_logs(errors)} if errors else {}
