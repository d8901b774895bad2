"""BEFORE_DOWNLOAD webhook. The host calls this once per download attempt.

  POST /v1/before-download   body: BeforeDownloadRequest
                             reply: BeforeDownloadResponse (always HTTP 200)

The host obeys whatever status comes back. Readiness (503) is enforced by the
router-level ``require_ready`` dependency registered in create_app(); the gate
key (401) by ``authenticate_request``. Both run before the body is evaluated.

Each call binds a ULID request_id, the repository and the path into the log
context. The request_id is also echoed in the ``X-Rescan-Gate-Request-ID``
response header.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request, Response

from rescan_gate.auth.middleware import authenticate_request
from rescan_gate.config import Config
from rescan_gate.constants import REQUEST_ID_HEADER
from rescan_gate.models.decision import Disposition
from rescan_gate.models.download import BeforeDownloadRequest, BeforeDownloadResponse
from rescan_gate.policy.decision import MSG_MALFORMED_REQUEST
from rescan_gate.policy.gate import evaluate_download
from rescan_gate.utils.logger import DOWNLOAD_CONTEXT_KEYS, get_logger, timed_evaluation
from rescan_gate.utils.ulid import generate_ulid
from rescan_gate.xray.client import XrayClient

logger = get_logger(__name__)

router = APIRouter(tags=["webhook"])

BEFORE_DOWNLOAD_PATH = "/v1/before-download"


@router.post(BEFORE_DOWNLOAD_PATH, response_model=BeforeDownloadResponse)
async def before_download(
    payload: BeforeDownloadRequest,
    request: Request,
    response: Response,
    caller: str = Depends(authenticate_request),
) -> BeforeDownloadResponse:
    """Evaluate one download attempt and return the verdict for the host."""
    config: Config = request.app.state.config
    client = XrayClient(request.app.state.xray_http_client)

    request_id = generate_ulid()
    response.headers[REQUEST_ID_HEADER] = request_id
    structlog.contextvars.bind_contextvars(
        request_id=request_id, repo=payload.repo_key, path=payload.artifact_path
    )
    try:
        logger.debug("Download request received", caller=caller)
        with timed_evaluation(logger) as outcome:
            disposition = await evaluate_download(
                payload, client, config.gate.gated_repositories
            )
            outcome["status"] = disposition.status.value
    finally:
        structlog.contextvars.unbind_contextvars(*DOWNLOAD_CONTEXT_KEYS)

    return disposition.to_response()


def malformed_request_response() -> BeforeDownloadResponse:
    """Verdict for a body that could not be parsed at all: fail closed."""
    return Disposition.stop(MSG_MALFORMED_REQUEST).to_response()
