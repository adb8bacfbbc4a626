# === NAVMAP v1 ===
# {
#   "module": "PackFormats.resolver",
#   "purpose": "Resolve pack format pairs from a version's client archive",
#   "sections": [
#     {
#       "id": "extract-pack-formats",
#       "name": "extract_pack_formats",
#       "anchor": "function-extract-pack-formats",
#       "kind": "function"
#     },
#     {
#       "id": "client-download-url",
#       "name": "client_download_url",
#       "anchor": "function-client-download-url",
#       "kind": "function"
#     },
#     {
#       "id": "artifactresolver",
#       "name": "ArtifactResolver",
#       "anchor": "class-artifactresolver",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Artifact resolution: descriptor → client archive → ``version.json`` → formats.

Each resolution suspends exactly twice (descriptor fetch, archive fetch).
Opening the archive and decoding ``version.json`` is synchronous CPU work done
by :func:`extract_pack_formats`; the archive bytes belong to the calling task
and are dropped once the formats are extracted.

Every per-item problem surfaces as a :class:`ResolutionError` subclass so the
scheduler can isolate it from sibling work.
"""

from __future__ import annotations

import io
import json
import logging
import zipfile
import zlib
from typing import Any, Optional

import httpx

from .errors import DescriptorError, MissingMetadataError, PackVersionSchemaError
from .http_session import fetch_bytes, fetch_json
from .models import CatalogEntry, PackFormatPair, decode_pack_version

__all__ = [
    "METADATA_ENTRY",
    "ArtifactResolver",
    "client_download_url",
    "extract_pack_formats",
]

LOGGER = logging.getLogger(__name__)

METADATA_ENTRY = "version.json"


def client_download_url(descriptor: Any, *, entry_id: Optional[str] = None) -> str:
    """Return ``downloads.client.url`` from a version descriptor."""

    try:
        url = descriptor["downloads"]["client"]["url"]
    except (KeyError, TypeError) as exc:
        raise DescriptorError(
            "descriptor has no downloads.client.url", entry_id=entry_id
        ) from exc
    if not isinstance(url, str) or not url:
        raise DescriptorError("downloads.client.url is not a string", entry_id=entry_id)
    return url


def extract_pack_formats(
    archive: bytes,
    *,
    metadata_name: str = METADATA_ENTRY,
    entry_id: Optional[str] = None,
) -> PackFormatPair:
    """Pull datapack/resourcepack numbers out of an in-memory client archive.

    Raises:
        MissingMetadataError: If the bytes are not a readable zip archive or lack
            ``metadata_name``.
        PackVersionSchemaError: If the metadata has no usable ``pack_version``.
    """

    try:
        with zipfile.ZipFile(io.BytesIO(archive)) as bundle:
            raw = bundle.read(metadata_name)
    except KeyError as exc:
        raise MissingMetadataError(f"{metadata_name} not found", entry_id=entry_id) from exc
    # Corrupt members surface as zlib.error, EOFError, or zip-level RuntimeError/ValueError.
    except (zipfile.BadZipFile, zlib.error, EOFError, OSError, RuntimeError, ValueError) as exc:
        raise MissingMetadataError(
            f"cannot read {metadata_name}: {exc}", entry_id=entry_id
        ) from exc

    try:
        metadata = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PackVersionSchemaError(
            f"{metadata_name} is not valid JSON: {exc}", entry_id=entry_id
        ) from exc
    if LOGGER.isEnabledFor(logging.DEBUG):
        LOGGER.debug("%s %s: %s", entry_id or "<archive>", metadata_name, json.dumps(metadata))

    if not isinstance(metadata, dict) or "pack_version" not in metadata:
        raise PackVersionSchemaError(
            f"{metadata_name} has no pack_version field", entry_id=entry_id
        )
    try:
        return decode_pack_version(metadata["pack_version"]).to_formats()
    except PackVersionSchemaError as exc:
        exc.entry_id = entry_id
        raise


class ArtifactResolver:
    """Resolve :class:`PackFormatPair` values for catalog entries."""

    def __init__(self, client: httpx.AsyncClient, *, metadata_name: str = METADATA_ENTRY) -> None:
        self.client = client
        self.metadata_name = metadata_name

    async def resolve(self, entry: CatalogEntry) -> PackFormatPair:
        """Fetch the descriptor and archive for ``entry`` and decode its formats.

        Raises:
            ResolutionError: Any per-item failure (fetch, descriptor, archive, schema).
        """

        descriptor = await fetch_json(self.client, entry.url, entry_id=entry.id)
        archive_url = client_download_url(descriptor, entry_id=entry.id)
        archive = await fetch_bytes(self.client, archive_url, entry_id=entry.id)
        LOGGER.debug("%s: fetched %d archive bytes from %s", entry.id, len(archive), archive_url)

        formats = extract_pack_formats(archive, metadata_name=self.metadata_name, entry_id=entry.id)
        LOGGER.debug("%s: %s", entry.id, formats.to_dict())
        return formats
