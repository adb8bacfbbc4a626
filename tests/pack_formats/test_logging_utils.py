"""Log formatting for console, JSON, and GitHub Actions output."""

from __future__ import annotations

import io
import json
import logging

import pytest

from PackFormats.errors import ResolutionFailure, log_resolution_failure
from PackFormats.logging_utils import GitHubActionsFormatter, JSONFormatter, setup_logging


@pytest.fixture
def package_logger():
    logger = logging.getLogger("PackFormats")
    level = logger.level
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(level)
    logger.propagate = True


def _record(level: int, message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("PackFormats.test", level, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_merges_extra_fields():
    record = _record(logging.ERROR, "Failed to process 1.14", extra_fields={"entry_id": "1.14"})
    payload = json.loads(JSONFormatter().format(record))
    assert payload["level"] == "ERROR"
    assert payload["logger"] == "PackFormats.test"
    assert payload["message"] == "Failed to process 1.14"
    assert payload["entry_id"] == "1.14"
    assert payload["timestamp"].endswith("Z")


def test_actions_formatter_annotates_errors_and_escapes_newlines():
    formatter = GitHubActionsFormatter()
    assert formatter.format(_record(logging.ERROR, "bad\nthing 100%")) == "::error::bad%0Athing 100%25"
    assert formatter.format(_record(logging.WARNING, "careful")) == "::warning::careful"
    assert formatter.format(_record(logging.INFO, "plain")) == "plain"
    assert formatter.format(_record(logging.DEBUG, "detail")) == "::debug::detail"


def test_setup_logging_json_stream(package_logger, monkeypatch):
    monkeypatch.delenv("GITHUB_ACTIONS", raising=False)
    stream = io.StringIO()
    setup_logging(level="INFO", fmt="json", stream=stream)
    setup_logging(level="INFO", fmt="json", stream=stream)

    log_resolution_failure(
        logging.getLogger("PackFormats.scheduler"),
        ResolutionFailure("1.14", "FetchError", "https://x -> 404", url="https://x", status_code=404),
    )

    lines = stream.getvalue().splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["message"] == "Failed to process 1.14: https://x -> 404"
    assert payload["status_code"] == 404
    assert payload["error_type"] == "FetchError"


def test_setup_logging_uses_annotations_in_actions(package_logger, monkeypatch):
    monkeypatch.setenv("GITHUB_ACTIONS", "true")
    stream = io.StringIO()
    setup_logging(level="WARNING", fmt="console", stream=stream)

    logging.getLogger("PackFormats.pipeline").info("hidden")
    logging.getLogger("PackFormats.pipeline").warning("no token")

    assert stream.getvalue() == "::warning::no token\n"
