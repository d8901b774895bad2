"""Download gate — the only entry point for evaluating a download request.

ATOMIC WRAPPER INVARIANTS:
  - ``evaluate_download()`` ALWAYS returns a ``Disposition``; it NEVER raises.
  - On any unexpected fault during resolution or remediation it returns
    DOWNLOAD_STOP carrying the fault's message.

Pipeline:
  1. classify_request()     — short-circuits without contacting Xray
  2. resolve_scan_status()  — liveness, then status (sequential awaits)
  3. trigger_reindex()      — only for an UNSCANNED artifact
  4. decide()               — pure combination

No state survives between calls: the same request against the same Xray state
always yields the same disposition.
"""

from __future__ import annotations

from typing import AbstractSet

from rescan_gate.models.decision import Disposition, SkipReason
from rescan_gate.models.download import BeforeDownloadRequest
from rescan_gate.policy.classifier import classify_request
from rescan_gate.policy.decision import decide, needs_remediation, unexpected_error
from rescan_gate.policy.remediation import trigger_reindex
from rescan_gate.policy.resolver import resolve_scan_status
from rescan_gate.utils.logger import get_logger
from rescan_gate.xray.client import XrayClient

logger = get_logger(__name__)

_SKIP_LOG_MESSAGES: dict[SkipReason, str] = {
    SkipReason.MISSING_IDENTITY: "Missing repo or path in request metadata",
    SkipReason.REPOSITORY_NOT_GATED: "Repository not gated, skipping scan check",
    SkipReason.FOLDER_OR_ROOT: "Folder or root requested, skipping scan check",
    SkipReason.SCANNER_SELF_TRAFFIC: "Allowing Xray indexing request",
}


async def evaluate_download(
    request: BeforeDownloadRequest,
    client: XrayClient,
    gated_repositories: AbstractSet[str] = frozenset(),
) -> Disposition:
    """Decide whether the requested artifact may be downloaded.

    INVARIANT: ALWAYS returns a Disposition. NEVER raises.

    Args:
        request:            The host's BEFORE_DOWNLOAD payload.
        client:             Xray client (shared HTTP connection pool underneath).
        gated_repositories: Repository keys the policy is active for (empty = all).
    """
    repo = request.repo_key
    path = request.artifact_path

    try:
        classification = classify_request(request, gated_repositories)
        if classification.skip_reason is not None:
            log = (
                logger.error
                if classification.skip_reason is SkipReason.MISSING_IDENTITY
                else logger.info
            )
            log(
                _SKIP_LOG_MESSAGES[classification.skip_reason],
                reason=classification.skip_reason.value,
                repo=repo,
                path=path,
            )
            return decide(classification)

        if repo is None or path is None:
            raise ValueError("applicable request without repository or path")

        resolution = await resolve_scan_status(client, repo, path)

        remediation = None
        if needs_remediation(classification, resolution):
            remediation = await trigger_reindex(client, repo, path)

        disposition = decide(classification, resolution, remediation)
        logger.info(
            "Download decision",
            repo=repo,
            path=path,
            verdict=resolution.verdict.value,
            remediation=remediation.outcome.value if remediation else None,
            status=disposition.status.value,
        )
        return disposition

    except Exception as exc:  # noqa: BLE001
        logger.error(
            "Unexpected error during scan validation, STOPPING",
            repo=repo,
            path=path,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=True,
        )
        return unexpected_error(exc)
