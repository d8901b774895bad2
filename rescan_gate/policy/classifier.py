"""Request classifier: does the rescan policy apply to this download at all?

Pure and total: no I/O, never raises. Rules run in this order, first match wins:

  1. repository key missing           → MISSING_IDENTITY (fails closed downstream)
  2. repository outside the gated set → REPOSITORY_NOT_GATED
  3. artifact path missing            → MISSING_IDENTITY
  4. folder or repository root        → FOLDER_OR_ROOT
  5. Xray fetching to index/scan      → SCANNER_SELF_TRAFFIC
  6. otherwise                        → applicable

The gated set is checked before the path: a repository the gate is not
configured for is never blocked, whatever else the request lacks.

Rule 5 must hold even for artifacts that are not yet scanned: Xray has to
download an artifact to scan it, so blocking that fetch would leave the
artifact unscannable forever.
"""

from __future__ import annotations

from typing import AbstractSet

from rescan_gate.constants import (
    LOOPBACK_ADDRESSES,
    LOOPBACK_V4_PREFIX,
    SCANNER_IDENTITY_MARKER,
)
from rescan_gate.models.decision import Classification, SkipReason
from rescan_gate.models.download import BeforeDownloadRequest


def classify_request(
    request: BeforeDownloadRequest,
    gated_repositories: AbstractSet[str] = frozenset(),
) -> Classification:
    """Classify one download request.

    Args:
        request:            The host's BEFORE_DOWNLOAD payload.
        gated_repositories: Repository keys the policy is active for. Empty
                            means every repository is gated.
    """
    repo_key = request.repo_key
    if not repo_key:
        return Classification.not_applicable(SkipReason.MISSING_IDENTITY)

    if gated_repositories and repo_key not in gated_repositories:
        return Classification.not_applicable(SkipReason.REPOSITORY_NOT_GATED)

    if not request.artifact_path:
        return Classification.not_applicable(SkipReason.MISSING_IDENTITY)

    target = request.target
    if target is not None and (target.is_folder or target.is_root):
        return Classification.not_applicable(SkipReason.FOLDER_OR_ROOT)

    if is_scanner_self_traffic(request):
        return Classification.not_applicable(SkipReason.SCANNER_SELF_TRAFFIC)

    return Classification.applies()


def is_scanner_self_traffic(request: BeforeDownloadRequest) -> bool:
    """True when the download originates from Xray itself.

    Checked case-insensitively: the user id, then the realm, then the client
    address (loopback means a co-located Xray).
    """
    user = request.user_context
    user_id = ((user.id if user else None) or "").lower()
    realm = ((user.realm if user else None) or "").lower()
    client_addr = request.client_address.lower()

    if SCANNER_IDENTITY_MARKER in user_id:
        return True
    if SCANNER_IDENTITY_MARKER in realm:
        return True
    return client_addr in LOOPBACK_ADDRESSES or client_addr.startswith(LOOPBACK_V4_PREFIX)
