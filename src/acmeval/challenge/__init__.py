"""ACME HTTP-01 challenge validation.

Exports the orchestrator, its collaborator interfaces, and the
structured error types.
"""

from acmeval.challenge.errors import (
    DirectoryCreateFailed,
    NoHttpChallengeAvailable,
    PollingTimedOut,
    RemoteCheckFailed,
    SelfCheckFailed,
    TokenDeleteFailed,
    TokenWriteFailed,
    ValidationCancelled,
    ValidationError,
)
from acmeval.challenge.fetcher import FetchError, TokenFetcher, UrllibTokenFetcher
from acmeval.challenge.orchestrator import ChallengeOrchestrator, ValidationOutcome
from acmeval.challenge.polling import PollPolicy
from acmeval.challenge.protocol import (
    Authorization,
    ChallengeOffer,
    PollResult,
    ProtocolClient,
)
from acmeval.challenge.publisher import (
    CallbackTokenPublisher,
    FileTokenPublisher,
    PublisherError,
    TokenPublisher,
    TokenPublisherFactory,
    load_token_publisher,
)

__all__ = [
    "Authorization",
    "CallbackTokenPublisher",
    "ChallengeOffer",
    "ChallengeOrchestrator",
    "DirectoryCreateFailed",
    "FetchError",
    "FileTokenPublisher",
    "NoHttpChallengeAvailable",
    "PollPolicy",
    "PollResult",
    "PollingTimedOut",
    "ProtocolClient",
    "PublisherError",
    "RemoteCheckFailed",
    "SelfCheckFailed",
    "TokenDeleteFailed",
    "TokenFetcher",
    "TokenPublisher",
    "TokenPublisherFactory",
    "TokenWriteFailed",
    "UrllibTokenFetcher",
    "ValidationCancelled",
    "ValidationError",
    "ValidationOutcome",
    "load_token_publisher",
]
