"""Settings resolution from defaults, environment, and overrides."""

from __future__ import annotations

from pathlib import Path

import pytest

from PackFormats.config import DEFAULT_COMMIT_TEMPLATE, LogFormat, TrackerSettings, load_settings
from PackFormats.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    import os

    for name in list(os.environ):
        if name.startswith(("PACKFORMATS_", "INPUT_", "GITHUB_")):
            monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = TrackerSettings()
    assert settings.output_path == Path("formats.json")
    assert settings.cutoff_version == "18w47a"
    assert settings.concurrency is None
    assert settings.commit_template == DEFAULT_COMMIT_TEMPLATE
    assert settings.log_format is LogFormat.CONSOLE
    assert settings.token() is None
    assert settings.http_config().timeout_read_s == 120.0


def test_prefixed_environment_variables(monkeypatch):
    monkeypatch.setenv("PACKFORMATS_CUTOFF_VERSION", "1.14")
    monkeypatch.setenv("PACKFORMATS_CONCURRENCY", "3")
    settings = TrackerSettings()
    assert settings.cutoff_version == "1.14"
    assert settings.concurrency == 3


def test_action_inputs(monkeypatch):
    monkeypatch.setenv("INPUT_OUTPUT_PATH", "data/formats.json")
    monkeypatch.setenv("INPUT_COMMIT_ENABLED", "true")
    monkeypatch.setenv("INPUT_COMMIT_SCOPE", "data")
    settings = TrackerSettings()
    assert settings.output_path == Path("data/formats.json")
    assert settings.commit_enabled is True
    assert settings.commit_scope == "data"


def test_empty_inputs_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("INPUT_CONCURRENCY", "")
    monkeypatch.setenv("INPUT_CUTOFF_VERSION", "")
    settings = TrackerSettings()
    assert settings.concurrency is None
    assert settings.cutoff_version == "18w47a"


def test_github_environment(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghs_secret")
    monkeypatch.setenv("GITHUB_REPOSITORY", "octo/tracker")
    settings = TrackerSettings()
    assert settings.token() == "ghs_secret"
    assert "ghs_secret" not in repr(settings)
    assert settings.github_repository == "octo/tracker"


def test_overrides_beat_environment(monkeypatch):
    monkeypatch.setenv("PACKFORMATS_CUTOFF_VERSION", "1.14")
    settings = load_settings(cutoff_version="1.15", concurrency=None)
    assert settings.cutoff_version == "1.15"
    assert settings.concurrency is None


def test_log_level_is_normalised():
    assert load_settings(log_level="debug").log_level == "DEBUG"


@pytest.mark.parametrize(
    "overrides",
    [
        {"github_repository": "not-a-repo"},
        {"concurrency": -1},
        {"log_level": "chatty"},
        {"timeout_read_s": 0},
    ],
)
def test_invalid_values_raise_configuration_error(overrides):
    with pytest.raises(ConfigurationError):
        load_settings(**overrides)
