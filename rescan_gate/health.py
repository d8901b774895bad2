"""Health endpoints for the rescan gate.

Implements:
  GET /health       — primary health check (503 before ready, 200 after)
  GET /health/xray  — runs the Xray liveness probe (200 either way)

/health says nothing about Xray on purpose: an unreachable Xray degrades the
gate to DOWNLOAD_WARN, it does not make the gate itself unhealthy.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from rescan_gate.auth.middleware import is_auth_required
from rescan_gate.config import Config
from rescan_gate.policy.resolver import check_xray_alive
from rescan_gate.xray.client import XrayClient

router = APIRouter(tags=["health"])


def _require_ready(request: Request) -> None:
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "Rescan gate is starting up...",
            },
        )


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Primary health check.

    Response body (200):
        {
          "status": "ok",
          "gate": "running",
          "xray_base_url": "http://localhost:8082",
          "gated_repositories": ["generic-local"] | "all",
          "auth_required": true
        }
    """
    _require_ready(request)

    config: Config = request.app.state.config

    return {
        "status": "ok",
        "gate": "running",
        "xray_base_url": config.xray.base_url,
        "gated_repositories": config.gate.repositories or "all",
        "auth_required": is_auth_required(),
    }


@router.get("/health/xray")
async def health_xray(request: Request) -> dict[str, Any]:
    """Probe Xray liveness the same way every download evaluation does."""
    _require_ready(request)

    client = XrayClient(request.app.state.xray_http_client)
    alive = await check_xray_alive(client)
    return {"xray": "alive" if alive else "unreachable"}
