"""Artifact resolution against in-memory archives and a mocked launcher server."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from PackFormats.errors import (
    DescriptorError,
    FetchError,
    MissingMetadataError,
    PackVersionSchemaError,
    ResolutionError,
)
from PackFormats.models import CatalogEntry, PackFormatPair
from PackFormats.resolver import ArtifactResolver, client_download_url, extract_pack_formats

from launcher_fakes import FakeLauncherMeta, FakeVersion, build_corrupt_archive


def _entry(version: FakeVersion) -> CatalogEntry:
    return CatalogEntry(id=version.id, url=version.descriptor_url, release_time=version.release_time)


def _resolve(meta: FakeLauncherMeta, version: FakeVersion) -> PackFormatPair:
    async def _run() -> PackFormatPair:
        async with meta.client() as client:
            return await ArtifactResolver(client).resolve(_entry(version))

    return asyncio.run(_run())


@pytest.mark.parametrize(
    ("pack_version", "expected"),
    [
        (4, PackFormatPair(4, 4)),
        ({"data": 10, "resource": 9}, PackFormatPair(10, 9)),
        (
            {"data_major": 82, "data_minor": 0, "resource_major": 65, "resource_minor": 2},
            PackFormatPair(82, 65.2),
        ),
    ],
)
def test_extract_pack_formats_from_archive(archive_factory, pack_version, expected):
    assert extract_pack_formats(archive_factory(pack_version)) == expected


def test_extract_requires_metadata_entry(archive_factory):
    with pytest.raises(MissingMetadataError, match="version.json not found"):
        extract_pack_formats(archive_factory(include_metadata=False), entry_id="1.12")


def test_extract_rejects_non_archive_bytes():
    with pytest.raises(MissingMetadataError) as excinfo:
        extract_pack_formats(b"definitely not a zip", entry_id="1.12")
    assert excinfo.value.entry_id == "1.12"


def test_extract_requires_pack_version_field(archive_factory):
    with pytest.raises(PackVersionSchemaError, match="no pack_version"):
        extract_pack_formats(archive_factory(metadata={"id": "1.14"}))


def test_extract_tags_schema_errors_with_entry_id(archive_factory):
    with pytest.raises(PackVersionSchemaError) as excinfo:
        extract_pack_formats(archive_factory({"weird": 1}), entry_id="99w99a")
    assert excinfo.value.entry_id == "99w99a"


def test_client_download_url_requires_nested_locator():
    assert client_download_url({"downloads": {"client": {"url": "https://x/c.jar"}}}) == "https://x/c.jar"
    with pytest.raises(DescriptorError):
        client_download_url({"downloads": {"server": {"url": "https://x/s.jar"}}})
    with pytest.raises(DescriptorError):
        client_download_url({"downloads": {"client": {"url": 7}}})


def test_resolve_fetches_descriptor_then_archive():
    version = FakeVersion("1.14", "2019-04-23T14:52:44+00:00", pack_version={"data": 4, "resource": 4})
    meta = FakeLauncherMeta(versions=[version])

    assert _resolve(meta, version) == PackFormatPair(4, 4)
    assert meta.requests == [version.descriptor_url, version.archive_url]


def test_descriptor_failure_is_fetch_error():
    version = FakeVersion("1.14", "2019-04-23T14:52:44+00:00", descriptor_status=404)
    meta = FakeLauncherMeta(versions=[version])

    with pytest.raises(FetchError) as excinfo:
        _resolve(meta, version)
    assert excinfo.value.status_code == 404
    assert excinfo.value.entry_id == "1.14"
    assert meta.archive_requests() == []


def test_archive_failure_is_fetch_error():
    version = FakeVersion("1.14", "2019-04-23T14:52:44+00:00", archive_status=503)
    meta = FakeLauncherMeta(versions=[version])

    with pytest.raises(FetchError) as excinfo:
        _resolve(meta, version)
    assert excinfo.value.status_code == 503
    assert excinfo.value.url == version.archive_url


def test_transport_failure_is_fetch_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def _run() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            entry = CatalogEntry(id="a", url="https://meta.example.test/a.json", time="2020-01-01T00:00:00Z")
            await ArtifactResolver(client).resolve(entry)

    with pytest.raises(FetchError) as excinfo:
        asyncio.run(_run())
    assert excinfo.value.status_code is None


def test_every_resolution_failure_shares_a_base_class(archive_factory):
    version = FakeVersion(
        "1.12", "2017-06-02T13:50:27+00:00", archive=archive_factory(include_metadata=False)
    )
    meta = FakeLauncherMeta(versions=[version])
    with pytest.raises(ResolutionError):
        _resolve(meta, version)


def test_corrupt_deflate_stream_is_missing_metadata():
    with pytest.raises(MissingMetadataError) as excinfo:
        extract_pack_formats(build_corrupt_archive(), entry_id="1.14")
    assert excinfo.value.entry_id == "1.14"
    assert "cannot read version.json" in str(excinfo.value)


@pytest.mark.parametrize("client_url", ["http://exa\x00mple/x", "http://:80/client.jar"])
def test_malformed_client_url_is_fetch_error(client_url):
    version = FakeVersion("1.14", "2019-04-23T14:52:44+00:00", client_url=client_url)
    meta = FakeLauncherMeta(versions=[version])

    with pytest.raises(FetchError) as excinfo:
        _resolve(meta, version)
    assert excinfo.value.entry_id == "1.14"
