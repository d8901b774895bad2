"""Scan status resolver. What does Xray say about this artifact?

Two sequential calls, one attempt each:

  1. Liveness probe. If Xray does not answer ``{"status": "pong"}`` (or the
     call fails in any way) the resolution is UNKNOWN with
     ``scanner_alive=False`` and the status query is skipped. A down Xray
     cannot act on a reindex anyway, and must not be mistaken for an
     unscanned artifact.
  2. Status query. ``overall.status`` of DONE or PARTIAL → SCANNED, any other
     non-empty value → UNSCANNED. Failure or an unrecognizable payload →
     UNKNOWN with ``scanner_alive=True``.

Neither function raises for Xray-side problems; only truly unexpected faults
propagate (and are caught by ``evaluate_download``).
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from rescan_gate.constants import SCANNED_STATUSES, XRAY_ALIVE_TOKEN
from rescan_gate.models.decision import ScanResolution, ScanVerdict
from rescan_gate.utils.logger import get_logger
from rescan_gate.xray.client import XrayClient

logger = get_logger(__name__)


async def check_xray_alive(client: XrayClient) -> bool:
    """Return True when Xray answers the ping with the alive token."""
    try:
        response = await client.ping()
        body = response.json()
    except httpx.HTTPStatusError as exc:
        logger.error(
            "Xray ping failed",
            error=str(exc),
            status_code=exc.response.status_code,
        )
        return False
    except httpx.HTTPError as exc:
        logger.error("Xray ping failed", error=str(exc), error_type=type(exc).__name__)
        return False
    except ValueError as exc:
        logger.error("Xray ping returned a non-JSON body", error=str(exc))
        return False

    return isinstance(body, dict) and body.get("status") == XRAY_ALIVE_TOKEN


async def get_artifact_scan_status(
    client: XrayClient, repo: str, path: str
) -> Optional[str]:
    """Return Xray's overall scan status for one artifact, or None if undeterminable."""
    try:
        response = await client.artifact_status(repo, path)
    except httpx.HTTPStatusError as exc:
        logger.error(
            "Scan status query failed",
            repo=repo,
            path=path,
            error=str(exc),
            status_code=exc.response.status_code,
        )
        return None
    except httpx.HTTPError as exc:
        logger.error(
            "Scan status query failed",
            repo=repo,
            path=path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return None

    try:
        payload: Any = response.json()
    except ValueError:
        payload = None

    status = _overall_status(payload)
    if status is None:
        logger.warning(
            "Unexpected scan status response",
            repo=repo,
            path=path,
            raw_payload=payload if payload is not None else response.text,
        )
    return status


def _overall_status(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    overall = payload.get("overall")
    if not isinstance(overall, dict):
        return None
    status = overall.get("status")
    if not isinstance(status, str) or not status:
        return None
    return status


def verdict_for_status(raw_status: Optional[str]) -> ScanVerdict:
    """Map a raw overall status to the tri-state verdict."""
    if raw_status is None:
        return ScanVerdict.UNKNOWN
    if raw_status in SCANNED_STATUSES:
        return ScanVerdict.SCANNED
    return ScanVerdict.UNSCANNED


async def resolve_scan_status(client: XrayClient, repo: str, path: str) -> ScanResolution:
    """Liveness probe, then status query, normalized into a ScanResolution."""
    if not await check_xray_alive(client):
        logger.warning("Xray is not available", repo=repo, path=path)
        return ScanResolution.unavailable()

    raw_status = await get_artifact_scan_status(client, repo, path)
    verdict = verdict_for_status(raw_status)
    logger.info(
        "Scan status resolved",
        repo=repo,
        path=path,
        verdict=verdict.value,
        raw_status=raw_status,
    )
    return ScanResolution(verdict=verdict, scanner_alive=True, raw_status=raw_status)
