"""GitHub Actions step outputs."""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Mapping, Optional, Union

__all__ = ["format_output", "write_outputs"]

LOGGER = logging.getLogger(__name__)

OutputValue = Union[str, bool, int]


def _stringify(value: OutputValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_output(name: str, value: OutputValue) -> str:
    """Format one ``name=value`` record, using a heredoc for multi-line values."""

    text = _stringify(value)
    if "\n" not in text and "\r" not in text:
        return f"{name}={text}\n"
    delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
    return f"{name}<<{delimiter}\n{text}\n{delimiter}\n"


def write_outputs(
    outputs: Mapping[str, OutputValue],
    *,
    output_file: Optional[Union[str, Path]] = None,
) -> bool:
    """Append ``outputs`` to the ``GITHUB_OUTPUT`` file.

    Returns:
        ``False`` when no output file is configured (not running in Actions).
    """

    target = output_file or os.environ.get("GITHUB_OUTPUT")
    if not target:
        LOGGER.debug("GITHUB_OUTPUT not set; skipping step outputs %s", sorted(outputs))
        return False
    with open(target, "a", encoding="utf-8") as handle:
        for name, value in outputs.items():
            handle.write(format_output(name, value))
    return True
