"""Version manifest loading."""

from __future__ import annotations

import logging
from typing import Any, List

import httpx

from .errors import CatalogError
from .http_session import fetch_json
from .models import CatalogEntry

__all__ = ["DEFAULT_MANIFEST_URL", "parse_catalog", "fetch_catalog"]

LOGGER = logging.getLogger(__name__)

DEFAULT_MANIFEST_URL = "https://launchermeta.mojang.com/mc/game/version_manifest.json"


def parse_catalog(payload: Any) -> List[CatalogEntry]:
    """Turn a manifest document into catalog entries, preserving manifest order."""

    if not isinstance(payload, dict) or not isinstance(payload.get("versions"), list):
        raise CatalogError("Version manifest must be an object with a 'versions' list")
    return [CatalogEntry.from_payload(item) for item in payload["versions"]]


async def fetch_catalog(client: httpx.AsyncClient, url: str = DEFAULT_MANIFEST_URL) -> List[CatalogEntry]:
    """Fetch and parse the version manifest once per run.

    Raises:
        FetchError: If the manifest cannot be downloaded.
        CatalogError: If the manifest is malformed.
    """

    payload = await fetch_json(client, url)
    entries = parse_catalog(payload)
    LOGGER.info("Fetched %d catalog entries from %s", len(entries), url)
    return entries
