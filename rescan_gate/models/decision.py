"""Decision values threaded through the rescan policy.

These are plain result values: the classifier, resolver and trigger return
them instead of raising, and ``decide()`` combines them into a Disposition.
Exceptions are reserved for faults nobody expected; those are caught once in
``evaluate_download()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from rescan_gate.models.download import BeforeDownloadResponse, DownloadStatus

# ─── Classification ───────────────────────────────────────────────────────────


class SkipReason(str, Enum):
    """Why the rescan policy does not apply to a request."""

    MISSING_IDENTITY = "missing-identity"
    REPOSITORY_NOT_GATED = "repository-not-gated"
    FOLDER_OR_ROOT = "folder-or-root"
    SCANNER_SELF_TRAFFIC = "scanner-self-traffic"


@dataclass(frozen=True)
class Classification:
    """Classifier result: applicable, or not applicable with a reason."""

    skip_reason: Optional[SkipReason] = None

    @property
    def applicable(self) -> bool:
        return self.skip_reason is None

    @classmethod
    def applies(cls) -> "Classification":
        return cls()

    @classmethod
    def not_applicable(cls, reason: SkipReason) -> "Classification":
        return cls(skip_reason=reason)


# ─── Scan status ──────────────────────────────────────────────────────────────


class ScanVerdict(str, Enum):
    SCANNED = "scanned"
    UNSCANNED = "unscanned"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ScanResolution:
    """Normalized answer from Xray for one artifact.

    Attributes:
        verdict:       Tri-state scan verdict.
        scanner_alive: False when the liveness probe failed. The status query
                       was then never sent and ``verdict`` is UNKNOWN.
        raw_status:    The overall status string Xray reported, if any.
    """

    verdict: ScanVerdict
    scanner_alive: bool = True
    raw_status: Optional[str] = None

    @classmethod
    def unavailable(cls) -> "ScanResolution":
        return cls(verdict=ScanVerdict.UNKNOWN, scanner_alive=False)


# ─── Remediation ──────────────────────────────────────────────────────────────


class RemediationResponse(str, Enum):
    """Tagged normalization of the force-reindex reply."""

    SUCCESS = "success"  # status code 200-299
    UNKNOWN = "unknown"  # no status code could be determined
    ERROR = "error"      # any other status code, or a transport error


class RemediationOutcome(str, Enum):
    TRIGGERED = "triggered"
    FAILED = "failed"


@dataclass(frozen=True)
class RemediationResult:
    """Result of one force-reindex attempt.

    ``detail`` keeps the response body or error text on ERROR for logging.
    """

    response: RemediationResponse
    status_code: Optional[int] = None
    detail: Optional[str] = None

    @property
    def outcome(self) -> RemediationOutcome:
        # UNKNOWN counts as triggered: no explicit error is not proof of failure
        if self.response is RemediationResponse.ERROR:
            return RemediationOutcome.FAILED
        return RemediationOutcome.TRIGGERED


# ─── Disposition ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Disposition:
    """Final answer for one download attempt."""

    status: DownloadStatus
    message: str
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def proceed(cls, message: str) -> "Disposition":
        return cls(status=DownloadStatus.DOWNLOAD_PROCEED, message=message)

    @classmethod
    def warn(cls, message: str) -> "Disposition":
        return cls(status=DownloadStatus.DOWNLOAD_WARN, message=message)

    @classmethod
    def stop(cls, message: str) -> "Disposition":
        return cls(status=DownloadStatus.DOWNLOAD_STOP, message=message)

    def to_response(self) -> BeforeDownloadResponse:
        return BeforeDownloadResponse(
            status=self.status, message=self.message, headers=dict(self.headers)
        )
