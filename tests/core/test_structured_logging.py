"""JSON log output: one parseable object per record with context at top level."""

from __future__ import annotations

import json
import logging
import sys

from app.core.logging import _ContainerFormatter, _JsonFormatter


def _record(msg: str = "test message", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_produces_valid_json() -> None:
    formatter = _JsonFormatter()
    record = logging.LogRecord(
        name="app.services.ledger_parser",
        level=logging.INFO,
        pathname="ledger_parser.py",
        lineno=42,
        msg="Parsing schema url=%s",
        args=("https://candyscan.idlab.org/tx/CANDY_DEV/domain/1",),
        exc_info=None,
    )
    parsed = json.loads(formatter.format(record))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "app.services.ledger_parser"
    assert parsed["message"] == (
        "Parsing schema url=https://candyscan.idlab.org/tx/CANDY_DEV/domain/1"
    )
    assert "timestamp" in parsed


def test_json_formatter_includes_request_fields() -> None:
    record = _record(request_id="abc-123", method="GET", path="/catalogue", duration_ms=12.5)
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "abc-123"
    assert parsed["method"] == "GET"
    assert parsed["path"] == "/catalogue"
    assert parsed["duration_ms"] == 12.5


def test_json_formatter_includes_catalogue_fields() -> None:
    record = _record(
        "Registry creddef call failed",
        level=logging.WARNING,
        credential_id="9f1c",
        phase="creddef",
        ledger="candy:dev",
    )
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["credential_id"] == "9f1c"
    assert parsed["phase"] == "creddef"
    assert parsed["ledger"] == "candy:dev"


def test_json_formatter_skips_unknown_extras() -> None:
    record = _record(api_key="secret")
    parsed = json.loads(_JsonFormatter().format(record))
    assert "api_key" not in parsed


def test_json_formatter_includes_exception_info() -> None:
    formatter = _JsonFormatter()
    try:
        raise ValueError("test error")
    except ValueError:
        record = _record("Something failed", level=logging.ERROR)
        record.exc_info = sys.exc_info()
        output = formatter.format(record)

    parsed = json.loads(output)
    assert "ValueError: test error" in parsed["exception"]


def test_container_formatter_is_plain_text() -> None:
    output = _ContainerFormatter().format(_record("server started"))
    assert "INFO" in output
    assert "server started" in output
    try:
        json.loads(output)
        raise AssertionError("Container format should not be valid JSON")
    except json.JSONDecodeError:
        pass
