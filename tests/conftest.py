"""Root conftest for the acmeval test suite."""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from acmeval.challenge.protocol import Authorization, ChallengeOffer, PollResult  # noqa: E402
from acmeval.core.jwk import AccountKeyDetails  # noqa: E402

# ---------------------------------------------------------------------------
# Shared ACME fixtures
# ---------------------------------------------------------------------------

DOMAIN = "example.com"
TOKEN = "abc123"
LOCATION = "https://ca.example/acme/authz/1"
CHALLENGE_URI = "https://ca.example/acme/challenge/1/http"


@pytest.fixture()
def account_key() -> AccountKeyDetails:
    """A fixed 32-byte modulus with the usual 65537 exponent."""
    return AccountKeyDetails(n=bytes(range(1, 33)), e=b"\x01\x00\x01")


@pytest.fixture()
def authorization() -> Authorization:
    """An authorization offering dns-01 before http-01."""
    return Authorization.from_json(
        {
            "identifier": {"type": "dns", "value": DOMAIN},
            "status": "pending",
            "challenges": [
                {"type": "dns-01", "token": "dns-token", "uri": CHALLENGE_URI + "-dns"},
                {"type": "http-01", "token": TOKEN, "uri": CHALLENGE_URI, "status": "pending"},
            ],
        }
    )


@pytest.fixture()
def acme_client(authorization: Authorization) -> MagicMock:
    """Protocol client mock that validates on the first re-poll."""
    client = MagicMock()
    client.auth.return_value = (authorization, LOCATION)
    client.challenge.return_value = PollResult(status="pending")
    client.request.return_value = PollResult(status="valid")
    return client


@pytest.fixture()
def http_offer() -> ChallengeOffer:
    return ChallengeOffer(type="http-01", token=TOKEN, uri=CHALLENGE_URI)


# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data(tmp_path: Path) -> dict:
    """Return a dict containing the minimum required config fields."""
    return {
        "challenges": {
            "base_url": "http://example.com/.well-known/acme-challenge",
            "publisher_config": {"directory": str(tmp_path / "acme-challenge")},
        },
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# ConfigKit singleton cleanup (autouse)
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the AcmevalConfig singleton before and after every test."""
    from acmeval.config.acmeval_config import AcmevalConfig

    AcmevalConfig.reset()
    yield
    AcmevalConfig.reset()
