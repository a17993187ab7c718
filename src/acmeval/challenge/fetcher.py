"""Self-check fetcher: read a published token back over HTTP.

The self-check asks the public URL for the token before the CA is
notified, so a web server that does not expose the challenges directory
is caught locally rather than by a failed remote validation.
"""

from __future__ import annotations

import abc
import logging
import urllib.error
import urllib.request

log = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised when the token URL cannot be read."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class TokenFetcher(abc.ABC):
    """Base class for token self-check fetchers."""

    @abc.abstractmethod
    def fetch(self, url: str) -> str:
        """Return the body served at *url*.

        Must raise :class:`FetchError` on any transport or HTTP failure.
        """


class UrllibTokenFetcher(TokenFetcher):
    """HTTP GET the token URL with ``urllib``.

    Follows redirects, requires HTTP 200, and reads at most
    *max_response_bytes* of the body.

    Parameters
    ----------
    timeout_seconds:
        Socket timeout for the request.
    max_response_bytes:
        Upper bound on the body size read.

    """

    def __init__(
        self,
        *,
        timeout_seconds: int = 10,
        max_response_bytes: int = 1048576,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.max_response_bytes = max_response_bytes

    def fetch(self, url: str) -> str:
        log.debug("Self-check: fetching %s", url)

        try:
            req = urllib.request.Request(url, method="GET")
            resp = urllib.request.urlopen(req, timeout=self.timeout_seconds)  # noqa: S310
        except urllib.error.HTTPError as exc:
            msg = f"server returned HTTP {exc.code} for {url}"
            raise FetchError(msg) from exc
        except (urllib.error.URLError, OSError) as exc:
            msg = f"could not connect to {url}: {exc}"
            raise FetchError(msg) from exc
        except ValueError as exc:
            # urllib rejects URLs without a usable scheme this way
            msg = f"invalid token URL {url!r}: {exc}"
            raise FetchError(msg) from exc

        with resp:
            if resp.status != 200:  # noqa: PLR2004
                msg = f"expected HTTP 200, got {resp.status}"
                raise FetchError(msg)
            try:
                body = resp.read(self.max_response_bytes)
            except OSError as exc:
                msg = f"error reading response body: {exc}"
                raise FetchError(msg) from exc

        try:
            return body.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = f"response body is not valid UTF-8: {exc}"
            raise FetchError(msg) from exc
