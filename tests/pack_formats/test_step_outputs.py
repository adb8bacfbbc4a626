"""GitHub Actions step output formatting."""

from __future__ import annotations

from PackFormats.actions import format_output, write_outputs


def test_format_output_simple_values():
    assert format_output("did_update", True) == "did_update=true\n"
    assert format_output("did_update", False) == "did_update=false\n"
    assert format_output("new_versions", "1.14,1.15") == "new_versions=1.14,1.15\n"


def test_format_output_multiline_uses_heredoc():
    text = format_output("notes", "a\nb")
    header, body, footer = text.splitlines()[0], text.splitlines()[1:3], text.splitlines()[3]
    name, delimiter = header.split("<<")
    assert name == "notes"
    assert body == ["a", "b"]
    assert footer == delimiter


def test_write_outputs_appends(tmp_path):
    target = tmp_path / "out"
    target.write_text("existing=1\n", encoding="utf-8")
    assert write_outputs({"path": "formats.json", "did_update": False}, output_file=target)
    assert target.read_text(encoding="utf-8") == "existing=1\npath=formats.json\ndid_update=false\n"


def test_write_outputs_without_target(monkeypatch):
    monkeypatch.delenv("GITHUB_OUTPUT", raising=False)
    assert write_outputs({"did_update": True}) is False
