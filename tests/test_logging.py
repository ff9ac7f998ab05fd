"""Test cases for structured logging of lookup and expression events."""

import pytest
import structlog
from lookconf import ExpressionLookup, LookupRegistry
from lookconf.logging import SecretRedactor, get_logger, setup_logging
from structlog.testing import capture_logs


class FailingLookup:
    def resolve(self, name):
        raise RuntimeError("backend unavailable")


def test_expression_failures_are_logged():
    """Test the diagnostics channel of the expression lookup.

    Given an invalid expression
    When resolving it
    Then a debug event describing the failure is emitted
    """
    lookup = ExpressionLookup()

    with capture_logs() as logs:
        lookup.resolve("1 +")

    events = [entry for entry in logs if entry["event"] == "expression_evaluation_failed"]
    assert len(events) == 1
    assert events[0]["log_level"] == "debug"
    assert events[0]["expression"] == "1 +"


def test_failing_lookups_are_logged():
    registry = LookupRegistry()
    registry.register("remote", FailingLookup())

    with capture_logs() as logs:
        assert registry.resolve("remote:key") is None

    assert logs[0]["event"] == "lookup_failed"
    assert logs[0]["prefix"] == "remote"
    assert logs[0]["error"] == "backend unavailable"


def test_secret_redaction():
    """Test that secrets never reach the log output."""
    redactor = SecretRedactor()

    event = redactor(
        None,
        "debug",
        {
            "event": "placeholder_unresolved",
            "db_password": "hunter2",
            "variable": "secrets:db.password",
            "value": "hunter2",
            "nested": {"api_key": "abc", "depth": 1},
        },
    )

    assert event["db_password"] == "[REDACTED]"
    assert event["value"] == "[REDACTED]"
    assert event["nested"] == {"api_key": "[REDACTED]", "depth": 1}
    assert event["event"] == "placeholder_unresolved"

    harmless = redactor(None, "debug", {"event": "x", "key": "server.host", "value": "localhost"})
    assert harmless["value"] == "localhost"


@pytest.mark.parametrize("format", ["console", "json"])
def test_setup_logging(format, capsys):
    try:
        setup_logging(level="DEBUG", format=format)
        get_logger("lookconf.test").info("configured", api_key="abc")
    finally:
        structlog.reset_defaults()

    output = capsys.readouterr().err
    assert "configured" in output
    assert "abc" not in output
