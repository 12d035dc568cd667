"""Unit tests for the logging utility."""

from __future__ import annotations

import json
import logging

from gatekeeper.core.logger import JSONFormatter, configure_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("gatekeeper.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_configure_logging_sets_level() -> None:
    """``configure_logging`` should set the root logger level."""

    # Act
    configure_logging("DEBUG")

    # Assert
    assert logging.getLogger().level == logging.DEBUG
    configure_logging("INFO")


def test_json_formatter_keeps_known_extras() -> None:
    payload = json.loads(
        JSONFormatter().format(_record(metering=True, login_method="password", secret="x"))
    )

    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["metering"] is True
    assert payload["login_method"] == "password"
    assert "secret" not in payload


def test_request_id_is_taken_from_header(app) -> None:
    from gatekeeper.core.logger import ensure_request_id

    with app.test_request_context(headers={"X-Correlation-ID": "corr-1"}):
        assert ensure_request_id() == "corr-1"
