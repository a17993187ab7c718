"""Token publishers: put the key authorization where the CA can fetch it.

Built-in publishers:

- ``file``      -- write tokens into a challenges directory served by a
  web server (``/.well-known/acme-challenge/``)
- ``callback``  -- hand the token to deploy/cleanup scripts

Custom publishers can be loaded via the ``ext:`` prefix
(e.g. ``ext:mypackage.publishers.MyFactory``).
"""

from __future__ import annotations

import abc
import importlib
import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Any

from acmeval.challenge.errors import (
    DirectoryCreateFailed,
    TokenDeleteFailed,
    TokenWriteFailed,
)

log = logging.getLogger(__name__)

DEFAULT_DIR_MODE = 0o755
DEFAULT_FILE_MODE = 0o644

# RFC 8555 tokens are base64url; anything else could escape the directory
_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class PublisherError(Exception):
    """Raised when a publisher cannot be built from its configuration."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class TokenPublisher(abc.ABC):
    """Base class for everything that can expose a challenge token."""

    def prepare(self) -> None:  # noqa: B027
        """Make the publishing target ready before any network call.

        Default implementation is a no-op.  Must raise
        :class:`DirectoryCreateFailed` when the target cannot be set up.
        """

    @abc.abstractmethod
    def publish(self, domain: str, token: str, content: str) -> str:
        """Expose *content* under *token* and return where it was written.

        Must raise :class:`TokenWriteFailed` on failure.
        """

    @abc.abstractmethod
    def remove(self, domain: str, token: str) -> None:
        """Withdraw a previously published token.

        Removing a token that does not exist is not an error.  Must raise
        :class:`TokenDeleteFailed` on failure.
        """


class FileTokenPublisher(TokenPublisher):
    """Write tokens as files into a web-served challenges directory.

    Parameters
    ----------
    directory:
        The challenges directory, usually
        ``<webroot>/.well-known/acme-challenge``.
    dir_mode:
        Mode applied to the directory when it has to be created.
    file_mode:
        Mode applied to every token file.

    """

    def __init__(
        self,
        directory: str | Path,
        *,
        dir_mode: int = DEFAULT_DIR_MODE,
        file_mode: int = DEFAULT_FILE_MODE,
    ) -> None:
        self.directory = Path(directory)
        self.dir_mode = dir_mode
        self.file_mode = file_mode

    def path_for(self, token: str) -> Path:
        return self.directory / token

    def prepare(self) -> None:
        if self.directory.is_dir():
            return
        try:
            self.directory.mkdir(mode=self.dir_mode, parents=True, exist_ok=True)
            # mkdir() is subject to the umask
            os.chmod(self.directory, self.dir_mode)  # noqa: PTH101
        except OSError as exc:
            log.error("Cannot create challenge directory %s: %s", self.directory, exc)
            raise DirectoryCreateFailed(str(self.directory)) from exc
        log.info("Created challenge directory %s", self.directory)

    def publish(self, domain: str, token: str, content: str) -> str:
        self.prepare()
        path = self.path_for(token)
        if not _TOKEN_RE.match(token):
            log.error("Refusing to write token with unsafe characters: %r", token)
            raise TokenWriteFailed(str(path))
        try:
            path.write_bytes(content.encode("utf-8"))
            os.chmod(path, self.file_mode)  # noqa: PTH101
        except OSError as exc:
            log.error("Cannot write challenge file %s: %s", path, exc)
            error = TokenWriteFailed(str(path))
            # A partial write or a failed chmod can leave the file behind
            try:
                path.unlink(missing_ok=True)
            except OSError as unlink_exc:
                log.error("Cannot remove partial challenge file %s: %s", path, unlink_exc)
                error.cleanup_error = unlink_exc
                error.add_note(f"token cleanup also failed: {unlink_exc}")
            raise error from exc
        log.debug("Published token for %s at %s", domain, path)
        return str(path)

    def remove(self, domain: str, token: str) -> None:
        path = self.path_for(token)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise TokenDeleteFailed(str(path)) from exc
        log.debug("Removed token for %s at %s", domain, path)

    def __repr__(self) -> str:
        return f"<FileTokenPublisher directory={self.directory}>"


class CallbackTokenPublisher(TokenPublisher):
    """Publish tokens through external scripts.

    The deploy script is called as
    ``script <domain> <token> <key_authorization>`` and the cleanup
    script as ``script <domain> <token>``.  A non-zero exit status, a
    timeout or a missing executable counts as failure.
    """

    def __init__(
        self,
        deploy_script: str,
        cleanup_script: str,
        *,
        script_timeout: int = 60,
    ) -> None:
        self.deploy_script = deploy_script
        self.cleanup_script = cleanup_script
        self.script_timeout = script_timeout

    def publish(self, domain: str, token: str, content: str) -> str:
        log.info("HTTP deploy: %s %s via %s", token, domain, self.deploy_script)
        try:
            subprocess.run(  # noqa: S603
                [self.deploy_script, domain, token, content],
                check=True,
                timeout=self.script_timeout,
                capture_output=True,
                text=True,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            log.error("Deploy script %s failed: %s", self.deploy_script, exc)
            raise TokenWriteFailed(self.deploy_script) from exc
        return self.deploy_script

    def remove(self, domain: str, token: str) -> None:
        log.info("HTTP cleanup: %s %s via %s", token, domain, self.cleanup_script)
        try:
            subprocess.run(  # noqa: S603
                [self.cleanup_script, domain, token],
                check=True,
                timeout=self.script_timeout,
                capture_output=True,
                text=True,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise TokenDeleteFailed(self.cleanup_script) from exc


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


class TokenPublisherFactory(abc.ABC):
    """Create a :class:`TokenPublisher` from a config dict."""

    @abc.abstractmethod
    def create(self, config: dict[str, Any]) -> TokenPublisher:
        """Build and return a publisher.

        Parameters
        ----------
        config:
            The ``challenges.publisher_config`` dict from settings.

        """


class FilePublisherFactory(TokenPublisherFactory):
    """Factory for :class:`FileTokenPublisher`.

    Required config keys:

    - ``directory``: the challenges directory

    """

    def create(self, config: dict[str, Any]) -> TokenPublisher:
        directory = config.get("directory")
        if not directory:
            msg = "file publisher requires 'directory' in config"
            raise PublisherError(msg)
        return FileTokenPublisher(
            directory,
            dir_mode=config.get("dir_mode", DEFAULT_DIR_MODE),
            file_mode=config.get("file_mode", DEFAULT_FILE_MODE),
        )


class CallbackPublisherFactory(TokenPublisherFactory):
    """Factory for :class:`CallbackTokenPublisher`.

    Required config keys:

    - ``deploy_script``
    - ``cleanup_script``

    """

    def create(self, config: dict[str, Any]) -> TokenPublisher:
        deploy_script = config.get("deploy_script")
        cleanup_script = config.get("cleanup_script")
        if not deploy_script:
            msg = "callback publisher requires 'deploy_script' in config"
            raise PublisherError(msg)
        if not cleanup_script:
            msg = "callback publisher requires 'cleanup_script' in config"
            raise PublisherError(msg)
        return CallbackTokenPublisher(
            deploy_script,
            cleanup_script,
            script_timeout=config.get("script_timeout", 60),
        )


_BUILTIN_FACTORIES: dict[str, TokenPublisherFactory] = {
    "file": FilePublisherFactory(),
    "callback": CallbackPublisherFactory(),
}

BUILTIN_PUBLISHERS = frozenset(_BUILTIN_FACTORIES)


def load_token_publisher(name: str, config: dict[str, Any]) -> TokenPublisher:
    """Load and create a token publisher.

    Parameters
    ----------
    name:
        Built-in name (``file``, ``callback``) or
        ``ext:fully.qualified.FactoryClass`` for custom factories.
    config:
        The ``challenges.publisher_config`` dict from settings.

    Raises
    ------
    PublisherError
        If the publisher cannot be loaded or created.

    """
    if name in _BUILTIN_FACTORIES:
        return _BUILTIN_FACTORIES[name].create(config)

    if name.startswith("ext:"):
        return _load_external_publisher(name[4:], config)

    msg = (
        f"Unknown token publisher '{name}'; "
        f"built-in options: {sorted(_BUILTIN_FACTORIES)}. "
        "Use 'ext:mypackage.module.FactoryClass' for custom publishers."
    )
    raise PublisherError(msg)


def _load_external_publisher(fqn: str, config: dict[str, Any]) -> TokenPublisher:
    """Load and instantiate an external publisher factory by FQN."""
    module_path, _, cls_name = fqn.rpartition(".")
    if not module_path:
        msg = (
            f"Invalid external publisher factory '{fqn}': must be "
            "fully qualified (e.g. 'mypackage.module.FactoryClass')"
        )
        raise PublisherError(msg)
    try:
        module = importlib.import_module(module_path)
        cls = getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load external publisher factory '{fqn}': {exc}"
        raise PublisherError(msg) from exc

    if not (isinstance(cls, type) and issubclass(cls, TokenPublisherFactory)):
        msg = f"External publisher factory '{fqn}' must be a subclass of TokenPublisherFactory"
        raise PublisherError(msg)

    return cls().create(config)
