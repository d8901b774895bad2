"""Decision policy — pure mapping from classifier/resolver/trigger results to a Disposition.

    classification          resolution               remediation  →  disposition
    ─────────────────────── ──────────────────────── ───────────     ───────────
    missing-identity        —                        —               STOP
    repository-not-gated    —                        —               PROCEED
    folder-or-root          —                        —               PROCEED
    scanner-self-traffic    —                        —               PROCEED
    applicable              Xray not alive           —               WARN
    applicable              SCANNED                  —               PROCEED
    applicable              UNSCANNED                TRIGGERED       STOP
    applicable              UNSCANNED                FAILED          STOP
    applicable              UNKNOWN (Xray alive)     —               STOP

Xray being unreachable only warns: with no Xray nothing in a gated repository
could ever be verified, and hard-blocking every download would be a wider
outage than the policy is meant to cause. A failed status query against a live
Xray says nothing about systemic availability, so it blocks.
"""

from __future__ import annotations

from typing import Callable, Optional

from rescan_gate.models.decision import (
    Classification,
    Disposition,
    RemediationOutcome,
    RemediationResult,
    ScanResolution,
    ScanVerdict,
    SkipReason,
)

# ─── Messages shown to the downloading user ──────────────────────────────────

MSG_MISSING_IDENTITY = "Unable to validate artifact. Missing repository or path information."
MSG_MALFORMED_REQUEST = "Unable to validate artifact. Malformed download request."
MSG_NOT_GATED = "Repository is not gated by the rescan policy. Proceeding with download."
MSG_FOLDER_OR_ROOT = "Skipping folder/root - scan check only applies to artifacts."
MSG_SCANNER_SELF_TRAFFIC = "Allowing Xray indexing request."
MSG_XRAY_UNAVAILABLE = (
    "Could not check Xray scan status. Xray may be unavailable. Proceeding with warning."
)
MSG_SCANNED = "Artifact is scanned (status: {status}). Proceeding with download."
MSG_REINDEX_TRIGGERED = (
    "Artifact is not scanned. Reindex has been triggered for this artifact. "
    "Please try again shortly once the reindex completes."
)
MSG_REINDEX_FAILED = (
    "Artifact is not scanned. Could not trigger reindex. "
    'Please run "Reindex existing artifacts" in Xray for this repo, then try again.'
)
MSG_STATUS_UNKNOWN = (
    "Could not determine Xray scan status for this artifact. Please try again."
)
MSG_UNEXPECTED_ERROR = "Error during scan validation: {error}. Please try again."

_SKIP_DISPOSITIONS: dict[SkipReason, tuple[Callable[[str], Disposition], str]] = {
    SkipReason.MISSING_IDENTITY: (Disposition.stop, MSG_MISSING_IDENTITY),
    SkipReason.REPOSITORY_NOT_GATED: (Disposition.proceed, MSG_NOT_GATED),
    SkipReason.FOLDER_OR_ROOT: (Disposition.proceed, MSG_FOLDER_OR_ROOT),
    SkipReason.SCANNER_SELF_TRAFFIC: (Disposition.proceed, MSG_SCANNER_SELF_TRAFFIC),
}


def needs_remediation(classification: Classification, resolution: ScanResolution) -> bool:
    """True when a reindex must be triggered before the final verdict."""
    return classification.applicable and resolution.verdict is ScanVerdict.UNSCANNED


def decide(
    classification: Classification,
    resolution: Optional[ScanResolution] = None,
    remediation: Optional[RemediationResult] = None,
) -> Disposition:
    """Combine the three component results into the final Disposition.

    Raises:
        ValueError: For an applicable request without a resolution, or an
                    UNSCANNED resolution without a remediation result. Both
                    are caller bugs, not Xray conditions.
    """
    if classification.skip_reason is not None:
        build, message = _SKIP_DISPOSITIONS[classification.skip_reason]
        return build(message)

    if resolution is None:
        raise ValueError("applicable request decided without a scan resolution")

    if not resolution.scanner_alive:
        return Disposition.warn(MSG_XRAY_UNAVAILABLE)

    if resolution.verdict is ScanVerdict.SCANNED:
        return Disposition.proceed(MSG_SCANNED.format(status=resolution.raw_status))

    if resolution.verdict is ScanVerdict.UNSCANNED:
        if remediation is None:
            raise ValueError("unscanned artifact decided without a remediation result")
        if remediation.outcome is RemediationOutcome.TRIGGERED:
            return Disposition.stop(MSG_REINDEX_TRIGGERED)
        return Disposition.stop(MSG_REINDEX_FAILED)

    return Disposition.stop(MSG_STATUS_UNKNOWN)


def unexpected_error(exc: BaseException) -> Disposition:
    """STOP disposition for a fault that escaped the components."""
    return Disposition.stop(MSG_UNEXPECTED_ERROR.format(error=str(exc) or type(exc).__name__))
