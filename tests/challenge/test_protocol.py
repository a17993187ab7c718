"""Tests for the protocol value types and the validation error hierarchy."""

from __future__ import annotations

import pytest

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
from acmeval.challenge.protocol import (
    Authorization,
    ChallengeOffer,
    PollResult,
    ProtocolClient,
)


class TestChallengeOffer:
    def test_from_json_uri(self):
        offer = ChallengeOffer.from_json(
            {"type": "http-01", "token": "t", "uri": "https://ca/c/1", "status": "pending"}
        )
        assert offer == ChallengeOffer("http-01", "t", "https://ca/c/1", "pending")

    def test_from_json_falls_back_to_url(self):
        offer = ChallengeOffer.from_json({"type": "http-01", "token": "t", "url": "https://ca/c/2"})
        assert offer.uri == "https://ca/c/2"
        assert offer.status is None


class TestAuthorization:
    def test_preserves_order(self, authorization):
        assert [c.type for c in authorization.challenges] == ["dns-01", "http-01"]
        assert authorization.raw["identifier"]["value"] == "example.com"

    def test_missing_challenges(self):
        assert Authorization.from_json({"status": "pending"}).challenges == ()

    def test_null_challenges(self):
        assert Authorization.from_json({"challenges": None}).challenges == ()


class TestPollResult:
    @pytest.mark.parametrize(
        ("data", "expected"),
        [
            ({"status": "valid"}, "valid"),
            ({"status": ""}, None),
            ({}, None),
            (None, None),
        ],
    )
    def test_from_json(self, data, expected):
        assert PollResult.from_json(data).status == expected


class TestProtocolClient:
    def test_mock_satisfies_protocol(self, acme_client):
        assert isinstance(acme_client, ProtocolClient)

    def test_object_without_methods_does_not(self):
        assert not isinstance(object(), ProtocolClient)


class TestErrors:
    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (DirectoryCreateFailed("/srv/acme"), "challenge_cannot_create_dir"),
            (TokenWriteFailed("/srv/acme/t"), "challenge_cannot_write_file"),
            (TokenDeleteFailed("/srv/acme/t"), "challenge_cannot_delete_file"),
            (SelfCheckFailed("http://x/t"), "challenge_self_failed"),
            (NoHttpChallengeAvailable({}), "no_challenge_available"),
            (RemoteCheckFailed("invalid"), "challenge_remote_failed"),
            (PollingTimedOut(12.0), "challenge_poll_timeout"),
            (ValidationCancelled(), "challenge_cancelled"),
        ],
    )
    def test_codes(self, error, code):
        assert isinstance(error, ValidationError)
        assert error.code == code
        assert error.to_dict()["code"] == code

    def test_to_dict_context_and_cleanup(self):
        error = RemoteCheckFailed("invalid")
        error.cleanup_error = TokenDeleteFailed("/srv/acme/t")

        result = error.to_dict()

        assert result["context"] == {"status": "invalid"}
        assert "/srv/acme/t" in result["cleanup_error"]

    def test_remote_failed_without_status(self):
        assert "no status" in str(RemoteCheckFailed(None))

    def test_no_challenge_embeds_response(self):
        raw = {"challenges": [{"type": "dns-01"}]}
        error = NoHttpChallengeAvailable(raw)
        assert "dns-01" in error.detail
        assert error.raw_response is raw

    def test_self_check_reason(self):
        error = SelfCheckFailed("http://x/t", "server returned HTTP 404")
        assert "HTTP 404" in error.detail
        assert error.url == "http://x/t"

    def test_repr(self):
        assert repr(ValidationCancelled()).startswith("<ValidationCancelled code=challenge_cancelled")

