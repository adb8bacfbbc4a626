"""Atomic text writes."""

from __future__ import annotations

from pathlib import Path

import pytest

from PackFormats import io_utils
from PackFormats.io_utils import atomic_write_text


def test_atomic_write_creates_parent_directories(tmp_path: Path):
    target = tmp_path / "a" / "b" / "formats.json"
    written = atomic_write_text(target, "{}")
    assert written == 2
    assert target.read_text(encoding="utf-8") == "{}"


def test_atomic_write_replaces_existing_document(tmp_path: Path):
    target = tmp_path / "formats.json"
    target.write_text("old", encoding="utf-8")
    atomic_write_text(target, "new ü")
    assert target.read_text(encoding="utf-8") == "new ü"
    assert [p.name for p in tmp_path.iterdir()] == ["formats.json"]


def test_failed_replace_removes_temp_and_keeps_previous_file(tmp_path: Path, monkeypatch):
    target = tmp_path / "formats.json"
    target.write_text("previous", encoding="utf-8")

    def broken_replace(src, dst):
        raise OSError("rename refused")

    monkeypatch.setattr(io_utils.os, "replace", broken_replace)
    with pytest.raises(OSError, match="rename refused"):
        atomic_write_text(target, "replacement")

    assert target.read_text(encoding="utf-8") == "previous"
    assert [p.name for p in tmp_path.iterdir()] == ["formats.json"]
