"""Tests for sensitive data filtering and log configuration."""

from __future__ import annotations

import json
import logging
import logging.handlers
from io import StringIO

import pytest

from rateman.core.config import LogSettings
from rateman.core.logging import JsonFormatter, SensitiveDataFilter, configure_logging, hash_key


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_identifiers_and_credentials():
    """Identifiers, API keys and store URLs never reach the output."""

    logger, stream = _capture("test_redaction")

    logger.info(
        "rate_limit.rejected",
        extra={
            "identifier": "user@example.com",
            "x-api-key": "sk-secret-123",
            "store_url": "redis://:hunter2@cache:6379/0",
            "limiter": "login",
        },
    )

    output = stream.getvalue()

    assert "user@example.com" not in output
    assert "sk-secret-123" not in output
    assert "hunter2" not in output
    assert "[REDACTED]" in output
    assert "login" in output


def test_sensitive_filter_allows_safe_fields():
    logger, stream = _capture("test_safe_fields")

    logger.info(
        "rate_limit.rejected",
        extra={
            "limiter": "api",
            "key_hash": hash_key("rateman:api:foo"),
            "lifts_at": 1_700_000_000_200,
            "span": 200,
        },
    )

    record = json.loads(stream.getvalue())

    assert record["message"] == "rate_limit.rejected"
    assert record["level"] == "info"
    assert record["lifts_at"] == 1_700_000_000_200
    assert record["key_hash"] == hash_key("rateman:api:foo")
    assert "[REDACTED]" not in stream.getvalue()


def test_hash_key_is_stable_and_short():
    assert hash_key("rateman:api:foo") == hash_key("rateman:api:foo")
    assert hash_key("rateman:api:foo") != hash_key("rateman:api:bar")
    assert len(hash_key("rateman:api:foo")) == 16


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configure_logging_plain_stdout(restore_root_logger):
    configure_logging(LogSettings(level="warning", format="plain"))

    root = restore_root_logger
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert not isinstance(root.handlers[0].formatter, JsonFormatter)


def test_configure_logging_rotating_file(restore_root_logger, tmp_path):
    log_file = tmp_path / "logs" / "rateman.log"

    configure_logging(
        LogSettings(output="file", file_path=str(log_file), max_bytes=1024, backup_count=2)
    )

    handler = restore_root_logger.handlers[0]
    assert isinstance(handler, logging.handlers.RotatingFileHandler)
    assert isinstance(handler.formatter, JsonFormatter)
    assert log_file.parent.is_dir()
    handler.close()


def test_sensitive_filter_accepts_custom_keys():
    record = logging.makeLogRecord({"msg": "custom", "tenant": "acme", "limiter": "api"})

    SensitiveDataFilter(["Tenant"]).filter(record)

    assert record.tenant == "[REDACTED]"
    assert record.limiter == "api"
    assert record.getMessage() == "custom"
