"""Shared constants for the rescan gate.

Xray REST paths, wire tokens and HTTP client sizing live here. No magic
strings in other modules; import from here.
"""

# ─── Xray REST API paths (relative to xray.base_url) ─────────────────────────

# Liveness probe. Healthy Xray answers {"status": "pong"}.
XRAY_PING_PATH: str = "/xray/api/v1/system/ping"

# Per-artifact scan status. Body {"repo": ..., "path": ...};
# reply carries the summary under overall.status.
XRAY_ARTIFACT_STATUS_PATH: str = "/xray/api/v1/artifact/status"

# Force reindex. Body {"artifacts": [{"repository": ..., "path": ...}]}.
# Only ever called with a single-artifact list.
XRAY_FORCE_REINDEX_PATH: str = "/xray/api/v1/forceReindex"

# ─── Wire tokens ──────────────────────────────────────────────────────────────

XRAY_ALIVE_TOKEN: str = "pong"

# Raw overall statuses that count as "scanned". PARTIAL means some scanners
# completed, which is enough to let the download through.
SCANNED_STATUSES: frozenset[str] = frozenset({"DONE", "PARTIAL"})

# ─── Scanner self-traffic recognition ─────────────────────────────────────────

# Substring looked for (case-insensitively) in the originator identity and realm.
SCANNER_IDENTITY_MARKER: str = "xray"

# Exact loopback client addresses; anything starting with "127." also matches.
LOOPBACK_ADDRESSES: frozenset[str] = frozenset({"127.0.0.1", "::1", "localhost"})
LOOPBACK_V4_PREFIX: str = "127."

# ─── Xray HTTP client sizing ─────────────────────────────────────────────────

# Pool size matches the uvicorn --limit-concurrency value in run.py: every
# concurrent download evaluation has a pooled slot for its Xray calls.
XRAY_POOL_MAX_CONNECTIONS: int = 100
XRAY_POOL_MAX_KEEPALIVE: int = 100
XRAY_POOL_KEEPALIVE_EXPIRY_S: float = 30.0
DEFAULT_XRAY_TIMEOUT_S: float = 30.0

# ─── Gate keys ────────────────────────────────────────────────────────────────

GATE_KEY_PREFIX: str = "rsg-"
GATE_KEY_HEADER: str = "X-Rescan-Gate-Key"
REQUEST_ID_HEADER: str = "X-Rescan-Gate-Request-ID"
