"""Typed failures raised by the HTTP-01 validation pipeline.

Every failure the orchestrator itself detects is a subclass of
:class:`ValidationError`.  Errors raised by the ACME protocol client
are *not* wrapped; they reach the caller unchanged.

The ``code`` attribute is a stable, machine-readable kind that lets a
caller tell apart a CA-side rejection, a local publishing problem and a
transport failure without parsing messages.
"""

from __future__ import annotations

from typing import Any, ClassVar


class ValidationError(Exception):
    """Base class for HTTP-01 validation failures.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    **context:
        Diagnostic values (offending path, raw CA response, ...).

    """

    code: ClassVar[str] = "challenge_failed"

    def __init__(self, detail: str, **context: Any) -> None:  # noqa: ANN401
        self.detail = detail
        self.context = context
        self.cleanup_error: BaseException | None = None
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a plain dict suitable for JSON output or audit."""
        result: dict[str, Any] = {"code": self.code, "detail": self.detail}
        if self.context:
            result["context"] = dict(self.context)
        if self.cleanup_error is not None:
            result["cleanup_error"] = str(self.cleanup_error)
        return result

    def __repr__(self) -> str:
        return f"<{type(self).__name__} code={self.code} detail={self.detail!r}>"


# ---------------------------------------------------------------------------
# Local environment cannot publish or serve the proof
# ---------------------------------------------------------------------------


class DirectoryCreateFailed(ValidationError):
    code = "challenge_cannot_create_dir"

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Could not create challenge directory {path}. "
            "Please check your filesystem permissions.",
            path=path,
        )
        self.path = path


class TokenWriteFailed(ValidationError):
    code = "challenge_cannot_write_file"

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Could not write challenge to file {path}. "
            "Please check your filesystem permissions.",
            path=path,
        )
        self.path = path


class TokenDeleteFailed(ValidationError):
    code = "challenge_cannot_delete_file"

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Could not remove challenge file {path}.",
            path=path,
        )
        self.path = path


class SelfCheckFailed(ValidationError):
    code = "challenge_self_failed"

    def __init__(self, url: str, reason: str = "content mismatch") -> None:
        super().__init__(
            f"Challenge self check failed for {url}: {reason}",
            url=url,
        )
        self.url = url


# ---------------------------------------------------------------------------
# CA-side outcome
# ---------------------------------------------------------------------------


class NoHttpChallengeAvailable(ValidationError):
    code = "no_challenge_available"

    def __init__(self, raw_response: Any) -> None:  # noqa: ANN401
        super().__init__(
            f"No HTTP challenge available. Original response: {raw_response!r}",
            raw_response=raw_response,
        )
        self.raw_response = raw_response


class RemoteCheckFailed(ValidationError):
    code = "challenge_remote_failed"

    def __init__(self, status: str | None) -> None:
        shown = status if status else "no status"
        super().__init__(
            f"Challenge remote check failed ({shown}).",
            status=status,
        )
        self.status = status


class PollingTimedOut(ValidationError):
    code = "challenge_poll_timeout"

    def __init__(self, elapsed: float) -> None:
        super().__init__(
            f"Authorization still pending after {elapsed:.1f}s.",
            elapsed=elapsed,
        )
        self.elapsed = elapsed


class ValidationCancelled(ValidationError):
    code = "challenge_cancelled"

    def __init__(self) -> None:
        super().__init__("Challenge validation was cancelled.")
