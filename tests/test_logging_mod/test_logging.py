"""Tests for acmeval.logging: formatters, context filter, setup and sanitization."""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

import pytest

from acmeval.config.settings import AuditLogSettings, LoggingSettings
from acmeval.logging import bind_token, configure_logging, sanitize_for_logs, validation_context
from acmeval.logging.sanitize import sanitize_jwk
from acmeval.logging.setup import (
    StructuredFormatter,
    TextFormatter,
    ValidationContextFilter,
)


def _make_record(msg="hello", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        name="acmeval.test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def _settings(fmt="json", level="INFO", enabled=True, file=None):
    return LoggingSettings(
        level=level,
        format=fmt,
        audit=AuditLogSettings(
            enabled=enabled,
            file=file,
            max_file_size_bytes=1024,
            backup_count=2,
        ),
    )


@pytest.fixture()
def restore_loggers():
    """Put the acmeval loggers back the way pytest's caplog expects them."""
    root = logging.getLogger("acmeval")
    audit = logging.getLogger("acmeval.audit")
    saved = (root.level, root.propagate, list(root.handlers), audit.level, audit.disabled)
    yield
    for handler in audit.handlers:
        handler.close()
    audit.handlers.clear()
    root.handlers[:] = saved[2]
    root.setLevel(saved[0])
    root.propagate = saved[1]
    audit.setLevel(saved[3])
    audit.disabled = saved[4]


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    def test_basic_fields(self):
        data = json.loads(StructuredFormatter().format(_make_record("Published token")))
        assert data["level"] == "INFO"
        assert data["logger"] == "acmeval.test"
        assert data["message"] == "Published token"
        assert data["timestamp"].endswith("+00:00")

    def test_context_fields(self):
        record = _make_record(domain="example.com", token="abc123")
        data = json.loads(StructuredFormatter().format(record))
        assert data["domain"] == "example.com"
        assert data["token"] == "abc123"

    def test_no_token_field_when_unset(self):
        data = json.loads(StructuredFormatter().format(_make_record(domain="-", token=None)))
        assert "token" not in data

    def test_extra_fields_included(self):
        record = _make_record(event="challenge.valid", polls=3, _private="x")
        data = json.loads(StructuredFormatter().format(record))
        assert data["event"] == "challenge.valid"
        assert data["polls"] == 3
        assert "_private" not in data

    def test_exception_included(self):
        try:
            msg = "boom"
            raise RuntimeError(msg)
        except RuntimeError:
            record = _make_record(level=logging.ERROR, exc_info=sys.exc_info())
        data = json.loads(StructuredFormatter().format(record))
        assert "RuntimeError: boom" in data["exception"]

    def test_non_serialisable_extra(self):
        data = json.loads(StructuredFormatter().format(_make_record(obj=object())))
        assert data["obj"].startswith("<object object")


class TestTextFormatter:
    def test_includes_domain(self):
        line = TextFormatter().format(_make_record("published", domain="example.com"))
        assert "[example.com]" in line
        assert "acmeval.test: published" in line


# ---------------------------------------------------------------------------
# Context filter
# ---------------------------------------------------------------------------


class TestValidationContextFilter:
    def test_outside_validation(self):
        record = _make_record()
        assert ValidationContextFilter().filter(record) is True
        assert record.domain == "-"
        assert record.token is None

    def test_inside_validation(self):
        record = _make_record()
        with validation_context("example.com"):
            bind_token("abc123")
            ValidationContextFilter().filter(record)
        assert record.domain == "example.com"
        assert record.token == "abc123"

    def test_context_is_reset_on_exit(self):
        with validation_context("example.com"):
            bind_token("abc123")
        record = _make_record()
        ValidationContextFilter().filter(record)
        assert record.domain == "-"
        assert record.token is None

    def test_nested_contexts(self):
        with validation_context("a.example"):
            bind_token("tok-a")
            with validation_context("b.example"):
                inner = _make_record()
                ValidationContextFilter().filter(inner)
            outer = _make_record()
            ValidationContextFilter().filter(outer)
        assert (inner.domain, inner.token) == ("b.example", None)
        assert (outer.domain, outer.token) == ("a.example", "tok-a")

    def test_explicit_attributes_win(self):
        record = _make_record(domain="explicit.example")
        with validation_context("example.com"):
            ValidationContextFilter().filter(record)
        assert record.domain == "explicit.example"


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


@pytest.mark.usefixtures("restore_loggers")
class TestConfigureLogging:
    def test_json_console_handler(self):
        root = configure_logging(_settings(level="DEBUG"))

        assert root.name == "acmeval"
        assert root.level == logging.DEBUG
        assert root.propagate is False
        assert len(root.handlers) == 1
        handler = root.handlers[0]
        assert isinstance(handler.formatter, StructuredFormatter)
        assert any(isinstance(f, ValidationContextFilter) for f in handler.filters)

    def test_text_format(self):
        root = configure_logging(_settings(fmt="text"))
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_reconfigure_replaces_handlers(self):
        configure_logging(_settings())
        root = configure_logging(_settings())
        assert len(root.handlers) == 1

    def test_audit_disabled(self):
        configure_logging(_settings(enabled=False))
        assert logging.getLogger("acmeval.audit").disabled is True

    def test_audit_file(self, tmp_path):
        audit_file = tmp_path / "audit.log"
        configure_logging(_settings(file=str(audit_file)))

        audit = logging.getLogger("acmeval.audit")
        assert audit.disabled is False
        handlers = [h for h in audit.handlers if isinstance(h, RotatingFileHandler)]
        assert len(handlers) == 1
        assert handlers[0].maxBytes == 1024
        assert handlers[0].backupCount == 2

        with validation_context("example.com"):
            audit.info("Challenge validated", extra={"event": "challenge.valid"})
        handlers[0].flush()

        data = json.loads(audit_file.read_text(encoding="utf-8").strip())
        assert data["event"] == "challenge.valid"
        assert data["domain"] == "example.com"

    def test_audit_file_unwritable(self, tmp_path):
        missing = tmp_path / "no-such-dir" / "audit.log"
        configure_logging(_settings(file=str(missing)))
        assert logging.getLogger("acmeval.audit").handlers == []


# ---------------------------------------------------------------------------
# Sanitization
# ---------------------------------------------------------------------------


class TestSanitize:
    def test_jwk_material_redacted(self):
        jwk = {"kty": "RSA", "n": "modulus", "e": "AQAB", "kid": "1"}
        assert sanitize_jwk(jwk) == {
            "kty": "RSA",
            "n": "[REDACTED]",
            "e": "[REDACTED]",
            "kid": "1",
        }

    def test_nested_jwk_and_key_authorization(self):
        data = {
            "status": "pending",
            "challenges": [
                {"type": "http-01", "token": "abc", "keyAuthorization": "abc.thumb"},
            ],
            "account": {"jwk": {"kty": "RSA", "n": "modulus", "e": "AQAB"}},
        }

        result = sanitize_for_logs(data)

        assert result["status"] == "pending"
        assert result["challenges"][0]["token"] == "abc"
        assert result["challenges"][0]["keyAuthorization"] == "[REDACTED]"
        assert result["account"]["jwk"]["n"] == "[REDACTED]"
        assert data["challenges"][0]["keyAuthorization"] == "abc.thumb"

    def test_tuples_preserved(self):
        assert sanitize_for_logs(({"keyAuthorization": "x"},)) == ({"keyAuthorization": "[REDACTED]"},)

    def test_scalars_pass_through(self):
        assert sanitize_for_logs("text") == "text"
        assert sanitize_for_logs(None) is None
