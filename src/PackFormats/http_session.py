# === NAVMAP v1 ===
# {
#   "module": "PackFormats.http_session",
#   "purpose": "Async HTTPX client factory and status-checked fetch helpers",
#   "sections": [
#     {
#       "id": "httpconfig",
#       "name": "HttpConfig",
#       "anchor": "class-httpconfig",
#       "kind": "class"
#     },
#     {
#       "id": "create-http-client",
#       "name": "create_http_client",
#       "anchor": "function-create-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "fetch-json",
#       "name": "fetch_json",
#       "anchor": "function-fetch-json",
#       "kind": "function"
#     },
#     {
#       "id": "fetch-bytes",
#       "name": "fetch_bytes",
#       "anchor": "function-fetch-bytes",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTP client factory for the manifest, descriptor, and archive downloads.

**Architecture**
----------------
One :class:`httpx.AsyncClient` per run → every resolution task shares its
connection pool, so descriptor and archive fetches to the same hosts reuse
TCP/TLS connections.

**Error contract**
------------------
:func:`fetch_json` and :func:`fetch_bytes` turn non-2xx responses and transport
failures into :class:`FetchError`, which callers treat as a per-item failure.
No retries happen here.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from .errors import FetchError

__all__ = ["HttpConfig", "create_http_client", "fetch_json", "fetch_bytes"]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpConfig:
    """HTTP configuration passed from top-level settings."""

    user_agent: str = "PackFormats/1.0 (+https://github.com/)"
    """User-Agent string sent with every request."""

    timeout_connect_s: float = 10.0
    """Connection timeout in seconds."""

    timeout_read_s: float = 120.0
    """Read timeout in seconds. Client archives are tens of megabytes."""

    max_connections: int = 16
    """Max pool size (total connections)."""

    verify_tls: bool = True
    """Verify TLS certificates."""


def create_http_client(
    config: Optional[HttpConfig] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Build the async client used for one run.

    **Parameters**

        config : HttpConfig, optional
            Timeouts, headers, pool limits. Defaults when None.
        transport : httpx.AsyncBaseTransport, optional
            Replacement transport (``httpx.MockTransport`` in tests).

    **Returns**

        httpx.AsyncClient
            Client that follows redirects; the caller closes it.
    """
    cfg = config or HttpConfig()
    timeout = httpx.Timeout(timeout=cfg.timeout_read_s, connect=cfg.timeout_connect_s)
    client = httpx.AsyncClient(
        timeout=timeout,
        verify=cfg.verify_tls,
        headers={"User-Agent": cfg.user_agent},
        follow_redirects=True,
        limits=httpx.Limits(max_connections=cfg.max_connections),
        transport=transport,
    )
    LOGGER.debug(
        "HTTP client created: UA=%s, timeout=%ss, max_connections=%d",
        cfg.user_agent,
        cfg.timeout_read_s,
        cfg.max_connections,
    )
    return client


async def _get(client: httpx.AsyncClient, url: str, entry_id: Optional[str]) -> httpx.Response:
    try:
        response = await client.get(url)
    # InvalidURL is not an HTTPError; some malformed URLs raise a plain ValueError.
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
        raise FetchError(f"{url} -> {exc}", url=url, entry_id=entry_id) from exc
    if not response.is_success:
        raise FetchError(
            f"{url} -> {response.status_code}",
            url=url,
            status_code=response.status_code,
            entry_id=entry_id,
        )
    return response


async def fetch_json(
    client: httpx.AsyncClient, url: str, *, entry_id: Optional[str] = None
) -> Any:
    """GET ``url`` and decode the body as JSON.

    Raises:
        FetchError: On transport failure, non-success status, or an undecodable body.
    """

    response = await _get(client, url, entry_id)
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise FetchError(
            f"{url} -> invalid JSON: {exc}",
            url=url,
            status_code=response.status_code,
            entry_id=entry_id,
        ) from exc


async def fetch_bytes(
    client: httpx.AsyncClient, url: str, *, entry_id: Optional[str] = None
) -> bytes:
    """GET ``url`` and return the raw body."""

    response = await _get(client, url, entry_id)
    return response.content
