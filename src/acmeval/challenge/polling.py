"""Poll pacing for a pending authorization.

The CA validates asynchronously, so after submitting the proof the
orchestrator re-reads the authorization until it leaves ``pending``.
:class:`PollPolicy` decides how long to wait between reads and when to
give up.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from acmeval.config.settings import PollingSettings


@dataclass(frozen=True)
class PollPolicy:
    """Interval, backoff and deadline for the poll loop.

    Attributes
    ----------
    interval_seconds:
        Wait before the first re-poll.
    backoff_factor:
        Multiplier applied to the wait after every poll; ``1.0`` keeps
        a fixed interval.
    max_interval_seconds:
        Cap on a single wait.
    timeout_seconds:
        Overall budget for the loop, measured from submission.  ``None``
        disables the deadline.

    """

    interval_seconds: float = 1.0
    backoff_factor: float = 1.0
    max_interval_seconds: float = 10.0
    timeout_seconds: float | None = 300.0

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            msg = "interval_seconds must be > 0"
            raise ValueError(msg)
        if self.backoff_factor < 1:
            msg = "backoff_factor must be >= 1"
            raise ValueError(msg)
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            msg = "timeout_seconds must be > 0"
            raise ValueError(msg)

    @classmethod
    def from_settings(cls, settings: PollingSettings) -> PollPolicy:
        return cls(
            interval_seconds=settings.interval_seconds,
            backoff_factor=settings.backoff_factor,
            max_interval_seconds=settings.max_interval_seconds,
            timeout_seconds=settings.timeout_seconds,
        )

    def delays(self) -> Iterator[float]:
        """Yield successive waits, growing geometrically up to the cap."""
        delay = self.interval_seconds
        while True:
            yield min(delay, max(self.max_interval_seconds, self.interval_seconds))
            delay *= self.backoff_factor

    def expired(self, elapsed: float) -> bool:
        return self.timeout_seconds is not None and elapsed >= self.timeout_seconds
