"""Integration fixtures: a full app wired to the MockXray double.

``gate_app(xray=..., config=...)`` builds a fresh app whose lifespan loads
*config* instead of reading a file and uses the MockXray transport instead of
a real Xray connection pool.
"""

from __future__ import annotations

from typing import Callable, Optional

import pytest
from fastapi import FastAPI

import rescan_gate.main as main_module
from rescan_gate.config import Config


@pytest.fixture
def gate_app(monkeypatch, mock_xray) -> Callable[..., FastAPI]:
    def _build(xray=None, config: Optional[Config] = None) -> FastAPI:
        xray = xray if xray is not None else mock_xray()
        config = config if config is not None else Config.defaults()
        monkeypatch.setattr(main_module, "load_config", lambda: config)
        monkeypatch.setattr(
            main_module, "create_xray_http_client", lambda xray_config: xray.http_client()
        )
        return main_module.create_app()

    return _build
