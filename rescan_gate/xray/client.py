"""Async Xray REST client.

Thin wrapper over a shared ``httpx.AsyncClient`` exposing the three calls the
gate needs:

  - ping()           GET  /xray/api/v1/system/ping
  - artifact_status  POST /xray/api/v1/artifact/status
  - force_reindex    POST /xray/api/v1/forceReindex (single artifact only)

Every method calls ``raise_for_status()``: a non-2xx reply surfaces as
``httpx.HTTPStatusError`` exactly like a transport failure surfaces as
``httpx.TransportError``. Turning those into verdicts is the job of the
resolver and the remediation trigger, not of this module.

The underlying ``httpx.AsyncClient`` is created once at lifespan startup
(``create_xray_http_client``) and stored in ``app.state.xray_http_client``.
It is never instantiated per request.
"""

from __future__ import annotations

from typing import Any

import httpx

from rescan_gate.config import XrayConfig
from rescan_gate.constants import (
    XRAY_ARTIFACT_STATUS_PATH,
    XRAY_FORCE_REINDEX_PATH,
    XRAY_PING_PATH,
    XRAY_POOL_KEEPALIVE_EXPIRY_S,
    XRAY_POOL_MAX_CONNECTIONS,
    XRAY_POOL_MAX_KEEPALIVE,
)


def create_xray_http_client(config: XrayConfig) -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient used for all Xray calls.

    The configured ``timeout_s`` is the only timeout in the request path;
    the gate adds none of its own.
    """
    headers = {"Accept": "application/json"}
    if config.access_token:
        headers["Authorization"] = f"Bearer {config.access_token}"

    return httpx.AsyncClient(
        base_url=config.base_url,
        headers=headers,
        limits=httpx.Limits(
            max_connections=XRAY_POOL_MAX_CONNECTIONS,
            max_keepalive_connections=XRAY_POOL_MAX_KEEPALIVE,
            keepalive_expiry=XRAY_POOL_KEEPALIVE_EXPIRY_S,
        ),
        timeout=httpx.Timeout(config.timeout_s),
        follow_redirects=False,
    )


class XrayClient:
    """The three Xray operations used by the rescan policy."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def ping(self) -> httpx.Response:
        response = await self._http.get(XRAY_PING_PATH)
        response.raise_for_status()
        return response

    async def artifact_status(self, repo: str, path: str) -> httpx.Response:
        response = await self._http.post(
            XRAY_ARTIFACT_STATUS_PATH, json={"repo": repo, "path": path}
        )
        response.raise_for_status()
        return response

    async def force_reindex(self, repo: str, path: str) -> httpx.Response:
        """Queue a reindex of exactly one artifact.

        The payload always carries a single-element ``artifacts`` list; this
        client has no way to ask for a repository-wide reindex.
        """
        payload: dict[str, Any] = {
            "artifacts": [
                {
                    "repository": repo,
                    "path": path,
                }
            ]
        }
        response = await self._http.post(XRAY_FORCE_REINDEX_PATH, json=payload)
        response.raise_for_status()
        return response
