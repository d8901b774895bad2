"""Gate key authentication for the webhook.

``authenticate_request()`` is a FastAPI dependency: it raises HTTP 401 BEFORE
the download is evaluated, so an unauthenticated caller can never make the
gate talk to Xray.

Header precedence:
  1. X-Rescan-Gate-Key: rsg-<ulid>
  2. Authorization: Bearer rsg-<ulid>

Auth control:
  - RESCAN_GATE_AUTH_REQUIRED=true  → key validation enforced (default)
  - RESCAN_GATE_AUTH_REQUIRED=false → bypassed, caller is 'anonymous' (dev/tests only)
"""

from __future__ import annotations

import asyncio
import os
import re

from fastapi import HTTPException, Request

from rescan_gate.auth.keys import is_cached_gate_key, verify_gate_key
from rescan_gate.constants import GATE_KEY_HEADER
from rescan_gate.utils.logger import get_logger

logger = get_logger(__name__)

_BEARER_RSG_RE = re.compile(r"^Bearer\s+(rsg-\S+)", re.IGNORECASE)


def is_auth_required() -> bool:
    """Read RESCAN_GATE_AUTH_REQUIRED per request so tests can monkeypatch it."""
    return os.environ.get("RESCAN_GATE_AUTH_REQUIRED", "true").lower() == "true"


def _extract_rsg_bearer(authorization: str) -> str | None:
    if not authorization:
        return None
    m = _BEARER_RSG_RE.match(authorization.strip())
    return m.group(1) if m else None


async def authenticate_request(request: Request) -> str:
    """FastAPI dependency: authenticate the calling artifact repository.

    Returns:
        ``"gate-key"`` for an authenticated caller, ``"anonymous"`` in bypass mode.

    Raises:
        HTTPException(401): Missing or unknown gate key while auth is required.
    """
    if not is_auth_required():
        return "anonymous"

    key = request.headers.get(GATE_KEY_HEADER) or _extract_rsg_bearer(
        request.headers.get("Authorization", "")
    )
    if not key:
        logger.warning(
            "Authentication failed: no gate key",
            path=str(request.url.path),
            method=request.method,
        )
        raise HTTPException(status_code=401, detail="Missing gate key")

    config = getattr(request.app.state, "config", None)
    key_hashes = list(config.auth.key_hashes) if config is not None else []
    if is_cached_gate_key(key, key_hashes):
        return "gate-key"

    # bcrypt is CPU-bound; keep it off the event loop
    loop = asyncio.get_running_loop()
    if not await loop.run_in_executor(None, verify_gate_key, key, key_hashes):
        logger.warning(
            "Authentication failed: invalid key",
            path=str(request.url.path),
            method=request.method,
        )
        raise HTTPException(status_code=401, detail="Invalid gate key")

    return "gate-key"
