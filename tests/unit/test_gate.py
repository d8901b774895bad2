"""Unit tests for evaluate_download(), the atomic never-raises wrapper.

Runs the whole pipeline against the MockXray double and checks both the
disposition and exactly which Xray endpoints were hit.

Covers:
  - skipped requests make zero Xray calls
  - Xray down → WARN, no status query, no reindex
  - DONE / PARTIAL → PROCEED, no reindex
  - unscanned → exactly one single-artifact reindex, STOP either way
  - status failure with live Xray → STOP, no reindex
  - repeated evaluation is idempotent
  - unexpected exceptions → STOP, never raised
"""

from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from rescan_gate.constants import XRAY_FORCE_REINDEX_PATH
from rescan_gate.models.download import BeforeDownloadRequest, DownloadStatus
from rescan_gate.policy import gate
from rescan_gate.policy.decision import (
    MSG_FOLDER_OR_ROOT,
    MSG_MISSING_IDENTITY,
    MSG_NOT_GATED,
    MSG_REINDEX_FAILED,
    MSG_REINDEX_TRIGGERED,
    MSG_SCANNER_SELF_TRAFFIC,
    MSG_STATUS_UNKNOWN,
    MSG_XRAY_UNAVAILABLE,
)
from rescan_gate.policy.gate import evaluate_download


@pytest.fixture
def build(request_payload: Callable[..., dict[str, Any]]) -> Callable[..., BeforeDownloadRequest]:
    def _build(**kwargs: Any) -> BeforeDownloadRequest:
        return BeforeDownloadRequest.model_validate(request_payload(**kwargs))

    return _build


class TestShortCircuits:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"is_folder": True}, MSG_FOLDER_OR_ROOT),
            ({"is_root": True}, MSG_FOLDER_OR_ROOT),
            ({"user_id": "xray"}, MSG_SCANNER_SELF_TRAFFIC),
            ({"realm": "xray"}, MSG_SCANNER_SELF_TRAFFIC),
            ({"client_address": "127.0.0.1"}, MSG_SCANNER_SELF_TRAFFIC),
        ],
    )
    async def test_proceed_without_contacting_xray(
        self, mock_xray, build, kwargs: dict[str, Any], message: str
    ) -> None:
        xray = mock_xray(status_body={"overall": {"status": "NOT_SCANNED"}})
        disposition = await evaluate_download(build(**kwargs), xray.client())

        assert disposition.status is DownloadStatus.DOWNLOAD_PROCEED
        assert disposition.message == message
        assert xray.total_calls == 0

    @pytest.mark.asyncio
    async def test_ungated_repository_proceeds(self, mock_xray, build) -> None:
        xray = mock_xray()
        disposition = await evaluate_download(
            build(repo="docker-remote"), xray.client(), frozenset({"generic-local"})
        )

        assert disposition.status is DownloadStatus.DOWNLOAD_PROCEED
        assert disposition.message == MSG_NOT_GATED
        assert xray.total_calls == 0

    @pytest.mark.asyncio
    async def test_ungated_repository_without_path_proceeds(self, mock_xray, build) -> None:
        xray = mock_xray()
        disposition = await evaluate_download(
            build(repo="docker-remote", path=None), xray.client(), frozenset({"generic-local"})
        )

        assert disposition.status is DownloadStatus.DOWNLOAD_PROCEED
        assert disposition.message == MSG_NOT_GATED
        assert xray.total_calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [{"repo": None}, {"path": None}])
    async def test_missing_identity_stops(self, mock_xray, build, kwargs) -> None:
        xray = mock_xray()
        disposition = await evaluate_download(build(**kwargs), xray.client())

        assert disposition.status is DownloadStatus.DOWNLOAD_STOP
        assert disposition.message == MSG_MISSING_IDENTITY
        assert xray.total_calls == 0


class TestXrayUnavailable:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "xray_kwargs",
        [
            {"ping_error": httpx.ConnectError("refused")},
            {"ping_status": 502},
            {"ping_body": {"status": "down"}},
        ],
    )
    async def test_warns_without_status_or_reindex(self, mock_xray, build, xray_kwargs) -> None:
        xray = mock_xray(**xray_kwargs)
        disposition = await evaluate_download(build(), xray.client())

        assert disposition.status is DownloadStatus.DOWNLOAD_WARN
        assert disposition.message == MSG_XRAY_UNAVAILABLE
        assert xray.ping_calls == 1
        assert xray.status_calls == 0
        assert xray.reindex_calls == 0


class TestScanned:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["DONE", "PARTIAL"])
    async def test_proceeds_without_reindex(self, mock_xray, build, raw: str) -> None:
        xray = mock_xray(status_body={"overall": {"status": raw}})
        disposition = await evaluate_download(build(), xray.client())

        assert disposition.status is DownloadStatus.DOWNLOAD_PROCEED
        assert f"(status: {raw})" in disposition.message
        assert xray.reindex_calls == 0


class TestUnscanned:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["NOT_SCANNED", "FAILED", "PENDING"])
    async def test_reindex_triggered_once(self, mock_xray, build, raw: str) -> None:
        xray = mock_xray(status_body={"overall": {"status": raw}})
        disposition = await evaluate_download(
            build(repo="maven-local", path="com/acme/app/1.0/app-1.0.jar"), xray.client()
        )

        assert disposition.status is DownloadStatus.DOWNLOAD_STOP
        assert disposition.message == MSG_REINDEX_TRIGGERED
        assert xray.json_bodies(XRAY_FORCE_REINDEX_PATH) == [
            {
                "artifacts": [
                    {"repository": "maven-local", "path": "com/acme/app/1.0/app-1.0.jar"}
                ]
            }
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [400, 500])
    async def test_reindex_rejected(self, mock_xray, build, code: int) -> None:
        xray = mock_xray(
            status_body={"overall": {"status": "NOT_SCANNED"}},
            reindex_status=code,
            reindex_body={"error": "nope"},
        )
        disposition = await evaluate_download(build(), xray.client())

        assert disposition.status is DownloadStatus.DOWNLOAD_STOP
        assert disposition.message == MSG_REINDEX_FAILED
        assert xray.reindex_calls == 1

    @pytest.mark.asyncio
    async def test_reindex_transport_error(self, mock_xray, build) -> None:
        xray = mock_xray(
            status_body={"overall": {"status": "NOT_SCANNED"}},
            reindex_error=httpx.ReadTimeout("slow"),
        )
        disposition = await evaluate_download(build(), xray.client())

        assert disposition.message == MSG_REINDEX_FAILED
        assert xray.reindex_calls == 1


class TestStatusUnknown:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "xray_kwargs",
        [
            {"status_status": 500},
            {"status_error": httpx.ConnectError("reset")},
            {"status_body": {"unexpected": True}},
            {"status_body": b"not json"},
        ],
    )
    async def test_stops_without_reindex(self, mock_xray, build, xray_kwargs) -> None:
        xray = mock_xray(**xray_kwargs)
        disposition = await evaluate_download(build(), xray.client())

        assert disposition.status is DownloadStatus.DOWNLOAD_STOP
        assert disposition.message == MSG_STATUS_UNKNOWN
        assert xray.reindex_calls == 0


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_same_request_same_disposition(self, mock_xray, build) -> None:
        xray = mock_xray(status_body={"overall": {"status": "NOT_SCANNED"}})
        client = xray.client()
        request = build()

        first = await evaluate_download(request, client)
        second = await evaluate_download(request, client)

        assert first == second
        assert xray.reindex_calls == 2


class TestNeverRaises:
    @pytest.mark.asyncio
    async def test_resolver_fault_becomes_stop(self, monkeypatch, mock_xray, build) -> None:
        async def _explode(*args: Any, **kwargs: Any) -> None:
            raise RuntimeError("resolver exploded")

        monkeypatch.setattr(gate, "resolve_scan_status", _explode)
        xray = mock_xray()
        disposition = await evaluate_download(build(), xray.client())

        assert disposition.status is DownloadStatus.DOWNLOAD_STOP
        assert disposition.message == (
            "Error during scan validation: resolver exploded. Please try again."
        )

    @pytest.mark.asyncio
    async def test_trigger_fault_becomes_stop(self, monkeypatch, mock_xray, build) -> None:
        async def _explode(*args: Any, **kwargs: Any) -> None:
            raise KeyError("artifacts")

        monkeypatch.setattr(gate, "trigger_reindex", _explode)
        xray = mock_xray(status_body={"overall": {"status": "NOT_SCANNED"}})
        disposition = await evaluate_download(build(), xray.client())

        assert disposition.status is DownloadStatus.DOWNLOAD_STOP
        assert disposition.message.startswith("Error during scan validation:")

    @pytest.mark.asyncio
    async def test_unexpected_transport_exception_becomes_stop(self, mock_xray, build) -> None:
        xray = mock_xray(status_error=RuntimeError("mock transport broke"))
        disposition = await evaluate_download(build(), xray.client())

        assert disposition.status is DownloadStatus.DOWNLOAD_STOP
        assert "mock transport broke" in disposition.message
