"""Command-line entry points."""

from __future__ import annotations

import json
import logging

import pytest
from typer.testing import CliRunner

from PackFormats import cli
from PackFormats.lifecycle import LifecycleSupervisor
from PackFormats.models import CatalogEntry
from PackFormats.planning import PlanSummary

from launcher_fakes import MANIFEST_URL, RecordingHooks

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_cli(monkeypatch, settings_factory, recording_hooks):
    """Keep process hooks and logger state local to each invocation."""

    monkeypatch.setattr(
        cli,
        "LifecycleSupervisor",
        lambda flush: LifecycleSupervisor(flush, hooks=recording_hooks),
    )
    package_logger = logging.getLogger("PackFormats")
    level = package_logger.level
    yield
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = True


def test_show_prints_stored_mapping(tmp_path):
    target = tmp_path / "formats.json"
    target.write_text(json.dumps({"25w31a": {"datapack": 82, "resourcepack": 65.2}}), encoding="utf-8")

    result = runner.invoke(cli.app, ["show", "--output", str(target)])

    assert result.exit_code == 0, result.output
    assert "25w31a" in result.output
    assert "65.2" in result.output


def test_show_reports_corrupt_mapping(tmp_path):
    target = tmp_path / "formats.json"
    target.write_text("[]", encoding="utf-8")
    result = runner.invoke(cli.app, ["show", "--output", str(target)])
    assert result.exit_code == 1


def test_run_updates_mapping(tmp_path, monkeypatch, launcher_meta, recording_hooks):
    monkeypatch.setattr("PackFormats.pipeline.create_http_client", lambda config: launcher_meta.client())
    target = tmp_path / "formats.json"

    result = runner.invoke(
        cli.app,
        ["run", "--output", str(target), "--manifest-url", MANIFEST_URL, "-j", "2", "--no-publish"],
    )

    assert result.exit_code == 0, result.output
    assert sorted(json.loads(target.read_text(encoding="utf-8"))) == ["1.14", "18w47a", "25w31a"]
    assert "Added: 3" in result.output
    assert recording_hooks.exits == []
    assert signal_handlers_armed(recording_hooks)


def test_run_with_corrupt_mapping_exits_1(tmp_path, launcher_meta, monkeypatch, recording_hooks):
    monkeypatch.setattr("PackFormats.pipeline.create_http_client", lambda config: launcher_meta.client())
    target = tmp_path / "formats.json"
    target.write_text("{broken", encoding="utf-8")

    result = runner.invoke(cli.app, ["run", "--output", str(target), "--manifest-url", MANIFEST_URL])

    assert result.exit_code == 1
    assert recording_hooks.exits == [1]
    assert launcher_meta.requests == []
    assert target.read_text(encoding="utf-8") == "{broken"


def test_run_rejects_invalid_configuration(tmp_path):
    result = runner.invoke(cli.app, ["run", "--output", str(tmp_path / "f.json"), "-j", "-2"])
    assert result.exit_code != 0


def test_plan_lists_pending_versions(monkeypatch):
    reference = CatalogEntry(id="18w47a", url="https://x/18w47a.json", time="2018-11-21T11:44:11+00:00")
    pending = CatalogEntry(id="1.14", url="https://x/1.14.json", time="2019-04-23T14:52:44+00:00")

    async def fake_plan_only(settings):
        return PlanSummary(reference=reference, pending=[reference, pending], known=0, too_old=1)

    monkeypatch.setattr(cli, "plan_only", fake_plan_only)
    result = runner.invoke(cli.app, ["plan", "--cutoff", "18w47a"])

    assert result.exit_code == 0, result.output
    assert "1.14" in result.output
    assert "2 pending, 0 known, 1 before cutoff" in result.output


def signal_handlers_armed(hooks: RecordingHooks) -> bool:
    return bool(hooks.signals) and len(hooks.atexit) == 1
