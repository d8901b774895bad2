"""Remediation trigger — force reindex of one unscanned artifact.

Only ever reindexes the single ``(repository, path)`` that was requested;
never the owning repository. Re-triggering an artifact that is already queued
or scanned is fine: Xray's force reindex is idempotent.

The reply is normalized once, here, into a ``RemediationResponse``:

  status code 200-299          → SUCCESS  (triggered)
  status code undeterminable   → UNKNOWN  (treated as triggered)
  any other code / transport   → ERROR    (failed; body kept for the log)
"""

from __future__ import annotations

from typing import Optional

import httpx

from rescan_gate.models.decision import RemediationResponse, RemediationResult
from rescan_gate.utils.logger import get_logger
from rescan_gate.xray.client import XrayClient

logger = get_logger(__name__)


def classify_reindex_status(status_code: Optional[int]) -> RemediationResponse:
    if status_code is None:
        return RemediationResponse.UNKNOWN
    if 200 <= status_code < 300:
        return RemediationResponse.SUCCESS
    return RemediationResponse.ERROR


async def trigger_reindex(client: XrayClient, repo: str, path: str) -> RemediationResult:
    """Ask Xray to reindex exactly one artifact and report how it went."""
    try:
        response = await client.force_reindex(repo, path)
    except httpx.HTTPStatusError as exc:
        status_code = exc.response.status_code
        detail = _response_detail(exc.response)
        logger.error(
            "Force reindex failed",
            repo=repo,
            path=path,
            status_code=status_code,
            error=str(exc),
            response_body=detail,
        )
        return RemediationResult(
            response=RemediationResponse.ERROR, status_code=status_code, detail=detail
        )
    except httpx.HTTPError as exc:
        logger.error(
            "Force reindex failed",
            repo=repo,
            path=path,
            status_code=None,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return RemediationResult(response=RemediationResponse.ERROR, detail=str(exc))

    status_code = getattr(response, "status_code", None)
    kind = classify_reindex_status(status_code)
    result = RemediationResult(
        response=kind,
        status_code=status_code,
        detail=_response_detail(response) if kind is RemediationResponse.ERROR else None,
    )
    if result.response is RemediationResponse.ERROR:
        logger.error(
            "Force reindex rejected",
            repo=repo,
            path=path,
            status_code=status_code,
            response_body=result.detail,
        )
    else:
        logger.info(
            "Force reindex triggered",
            repo=repo,
            path=path,
            status_code=status_code,
        )
    return result


def _response_detail(response: httpx.Response) -> Optional[str]:
    return getattr(response, "text", None) or None
