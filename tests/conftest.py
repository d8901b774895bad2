"""Root test configuration for the rescan gate.

Sets RESCAN_GATE_AUTH_REQUIRED=false for the whole suite so webhook tests do
not need to provision gate keys. Auth tests override it with their own
monkeypatch.

Provides ``mock_xray``: a factory for an in-process Xray double built on
``httpx.MockTransport`` that records every call the gate makes.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

import httpx
import pytest

from rescan_gate.auth.keys import clear_key_cache
from rescan_gate.constants import (
    XRAY_ARTIFACT_STATUS_PATH,
    XRAY_FORCE_REINDEX_PATH,
    XRAY_PING_PATH,
)
from rescan_gate.xray.client import XrayClient

XRAY_TEST_BASE_URL = "http://xray.test"

_UNSET: Any = object()


@pytest.fixture(autouse=True)
def disable_auth_for_tests(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RESCAN_GATE_AUTH_REQUIRED", "false")
    monkeypatch.delenv("RESCAN_GATE_CONFIG", raising=False)
    monkeypatch.delenv("RESCAN_GATE_PORT", raising=False)
    monkeypatch.delenv("RESCAN_GATE_XRAY_TOKEN", raising=False)


@pytest.fixture(autouse=True)
def reset_key_cache() -> None:
    clear_key_cache()


class MockXray:
    """Xray double: canned replies per endpoint, every request recorded.

    Each endpoint takes a status code, a JSON body (or raw bytes) and an
    optional exception to raise instead of replying.
    """

    def __init__(
        self,
        *,
        ping_body: Any = _UNSET,
        ping_status: int = 200,
        ping_error: Optional[Exception] = None,
        status_body: Any = _UNSET,
        status_status: int = 200,
        status_error: Optional[Exception] = None,
        reindex_body: Any = _UNSET,
        reindex_status: int = 200,
        reindex_error: Optional[Exception] = None,
    ) -> None:
        self.requests: list[httpx.Request] = []
        self._replies: dict[str, tuple[int, Any, Optional[Exception]]] = {
            XRAY_PING_PATH: (
                ping_status,
                {"status": "pong"} if ping_body is _UNSET else ping_body,
                ping_error,
            ),
            XRAY_ARTIFACT_STATUS_PATH: (
                status_status,
                {"overall": {"status": "DONE"}} if status_body is _UNSET else status_body,
                status_error,
            ),
            XRAY_FORCE_REINDEX_PATH: (
                reindex_status,
                {"info": "Reindex request accepted"} if reindex_body is _UNSET else reindex_body,
                reindex_error,
            ),
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self._replies.get(request.url.path)
        if reply is None:
            return httpx.Response(404, json={"error": "not found"})
        status_code, body, error = reply
        if error is not None:
            raise error
        if isinstance(body, bytes):
            return httpx.Response(status_code, content=body)
        return httpx.Response(status_code, json=body)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler), base_url=XRAY_TEST_BASE_URL
        )

    def client(self) -> XrayClient:
        return XrayClient(self.http_client())

    # ── Inspection ────────────────────────────────────────────────────────────

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @property
    def ping_calls(self) -> int:
        return len(self.calls(XRAY_PING_PATH))

    @property
    def status_calls(self) -> int:
        return len(self.calls(XRAY_ARTIFACT_STATUS_PATH))

    @property
    def reindex_calls(self) -> int:
        return len(self.calls(XRAY_FORCE_REINDEX_PATH))

    @property
    def total_calls(self) -> int:
        return len(self.requests)

    def json_bodies(self, path: str) -> list[Any]:
        return [json.loads(r.content) for r in self.calls(path)]


@pytest.fixture
def mock_xray() -> Callable[..., MockXray]:
    """Factory fixture: ``xray = mock_xray(status_body={...})``."""
    return MockXray


def make_request_payload(
    *,
    repo: Optional[str] = "generic-local",
    path: Optional[str] = "a/b/lib.jar",
    is_folder: bool = False,
    is_root: bool = False,
    user_id: Optional[str] = "alice",
    realm: Optional[str] = "internal",
    client_address: Optional[str] = "10.0.0.5",
) -> dict[str, Any]:
    """A BEFORE_DOWNLOAD body as the artifact repository sends it."""
    repo_path: dict[str, Any] = {"isFolder": is_folder, "isRoot": is_root}
    if repo is not None:
        repo_path["key"] = repo
    if path is not None:
        repo_path["path"] = path
        repo_path["id"] = f"{repo}:{path}"
    return {
        "metadata": {
            "repoPath": repo_path,
            "name": (path or "").rsplit("/", 1)[-1],
            "clientAddress": client_address,
            "repoType": 1,
            "headOnly": False,
        },
        "headers": {},
        "userContext": {"id": user_id, "isToken": False, "realm": realm},
    }


@pytest.fixture
def request_payload() -> Callable[..., dict[str, Any]]:
    """Factory fixture for BEFORE_DOWNLOAD bodies."""
    return make_request_payload
