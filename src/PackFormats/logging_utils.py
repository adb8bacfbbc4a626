"""Logging helpers shared across the tracker."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

__all__ = ["JSONFormatter", "GitHubActionsFormatter", "running_in_actions", "setup_logging"]

_MANAGED_ATTR = "_packformats_managed"


def running_in_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS", "").lower() == "true"


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as a JSON string including ``extra_fields``."""

        now = datetime.now(timezone.utc)
        payload = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            payload.update(record.extra_fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class GitHubActionsFormatter(logging.Formatter):
    """Prefix warnings and errors with workflow commands so they become annotations."""

    _COMMANDS = {logging.WARNING: "warning", logging.ERROR: "error", logging.CRITICAL: "error"}

    def __init__(self) -> None:
        super().__init__("%(message)s")

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        command = self._COMMANDS.get(record.levelno)
        if command is None:
            if record.levelno <= logging.DEBUG:
                return f"::debug::{text}"
            return text
        # Workflow commands end at the first newline unless it is escaped.
        escaped = text.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        return f"::{command}::{escaped}"


def setup_logging(
    *,
    level: str = "INFO",
    fmt: str = "console",
    stream: Optional[object] = None,
) -> logging.Logger:
    """Configure the ``PackFormats`` logger and return it.

    ``fmt`` is ``"console"`` or ``"json"``. Console output switches to
    workflow-command annotations when running inside GitHub Actions.
    """

    logger = logging.getLogger("PackFormats")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, _MANAGED_ATTR, False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    elif running_in_actions():
        handler.setFormatter(GitHubActionsFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    setattr(handler, _MANAGED_ATTR, True)
    logger.addHandler(handler)
    logger.propagate = False
    return logger
