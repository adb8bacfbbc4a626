"""
Shared fixtures for pack format tests.

Provides in-memory client archives, a fake launcher-metadata server served
through :class:`httpx.MockTransport`, and recording process hooks so lifecycle
handlers can be exercised without touching real signals.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

import pytest

from launcher_fakes import (
    MANIFEST_URL,
    FakeLauncherMeta,
    FakeVersion,
    RecordingHooks,
    build_archive,
)


@pytest.fixture
def archive_factory() -> Callable[..., bytes]:
    return build_archive


@pytest.fixture
def launcher_meta() -> FakeLauncherMeta:
    return FakeLauncherMeta(
        versions=[
            FakeVersion("1.13.2", "2018-10-22T11:41:07+00:00", pack_version=4),
            FakeVersion("18w47a", "2018-11-21T11:44:11+00:00", pack_version=4),
            FakeVersion("1.14", "2019-04-23T14:52:44+00:00", pack_version={"data": 4, "resource": 4}),
            FakeVersion(
                "25w31a",
                "2025-07-29T12:00:00+00:00",
                pack_version={
                    "data_major": 82,
                    "data_minor": 0,
                    "resource_major": 65,
                    "resource_minor": 2,
                },
            ),
        ]
    )


@pytest.fixture
def recording_hooks() -> RecordingHooks:
    return RecordingHooks()


@pytest.fixture
def settings_factory(tmp_path, monkeypatch):
    """Build settings pointing at a temp mapping file and the fake manifest."""

    import os

    from PackFormats.config import TrackerSettings, load_settings

    for name in list(os.environ):
        if name.startswith(("PACKFORMATS_", "INPUT_", "GITHUB_")):
            monkeypatch.delenv(name, raising=False)

    def _make(**overrides: Any) -> TrackerSettings:
        values: Dict[str, Any] = {
            "output_path": tmp_path / "formats.json",
            "manifest_url": MANIFEST_URL,
            "cutoff_version": "18w47a",
            "concurrency": 2,
        }
        values.update(overrides)
        return load_settings(**values)

    return _make
