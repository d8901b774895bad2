"""Config loading for the rescan gate.

Reads ``.rescan-gate/config.yaml`` (or ``~/.rescan-gate/config.yaml``).
Raises SystemExit on parse errors, a missing ``version`` field or invalid values.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. ``config_path`` argument (explicit override, used by tests)
  2. RESCAN_GATE_CONFIG environment variable (if set)
  3. ``.rescan-gate/config.yaml`` (working directory)
  4. ``~/.rescan-gate/config.yaml`` (home directory)

Environment variable overrides (applied after the file):
  RESCAN_GATE_PORT       — overrides server.port
  RESCAN_GATE_XRAY_TOKEN — overrides xray.access_token
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, NoReturn, Optional

import yaml

from rescan_gate.constants import DEFAULT_XRAY_TIMEOUT_S
from rescan_gate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_CONFIG_PATHS = [
    ".rescan-gate/config.yaml",
    os.path.expanduser("~/.rescan-gate/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class XrayConfig:
    """Where and how to reach Xray.

    base_url:     Platform URL that serves ``/xray/api/...`` (no trailing slash).
    access_token: Bearer token for the Xray REST API (None = unauthenticated).
    timeout_s:    Transport timeout for each Xray call. A timeout is treated
                  like any other transport failure.
    """

    base_url: str = "http://localhost:8082"
    access_token: Optional[str] = None
    timeout_s: float = DEFAULT_XRAY_TIMEOUT_S


@dataclass
class GateConfig:
    """Which repositories the rescan policy applies to.

    An empty list gates every repository.
    """

    repositories: list[str] = field(default_factory=list)

    @property
    def gated_repositories(self) -> frozenset[str]:
        return frozenset(self.repositories)


@dataclass
class ServerConfig:
    """Webhook server binding."""

    host: str = "127.0.0.1"
    port: int = 8090


@dataclass
class AuthConfig:
    """Accepted gate keys, stored as bcrypt hashes only."""

    key_hashes: list[str] = field(default_factory=list)


@dataclass
class Config:
    """Root configuration object populated from config.yaml.

    All fields have safe defaults: the gate can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    xray: XrayConfig = field(default_factory=XrayConfig)
    gate: GateConfig = field(default_factory=GateConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are ignored.

        Raises:
            SystemExit(1): On a section that is not a mapping, a non-http(s)
                           xray.base_url, a non-positive or non-numeric
                           xray.timeout_s, a server.port outside 1-65535, or a
                           list setting that is not a list of strings.
        """
        # ── Xray ──────────────────────────────────────────────────────────────
        xray_raw = _section(raw, "xray")
        base_url = xray_raw.get("base_url", XrayConfig.base_url)
        if not isinstance(base_url, str) or not base_url.startswith(("http://", "https://")):
            _config_error(
                f"CONFIG ERROR: Invalid xray.base_url: '{base_url}'. "
                "It must start with http:// or https://."
            )
        access_token = xray_raw.get("access_token")
        if access_token is not None and not isinstance(access_token, str):
            _config_error("CONFIG ERROR: xray.access_token must be a string.")
        timeout_s = xray_raw.get("timeout_s", DEFAULT_XRAY_TIMEOUT_S)
        if isinstance(timeout_s, bool) or not isinstance(timeout_s, (int, float)) or timeout_s <= 0:
            _config_error(
                f"CONFIG ERROR: Invalid xray.timeout_s: {timeout_s!r}. "
                "It must be a positive number of seconds."
            )
        xray = XrayConfig(
            base_url=base_url.rstrip("/"),
            access_token=access_token,
            timeout_s=float(timeout_s),
        )

        # ── Gate ──────────────────────────────────────────────────────────────
        gate_raw = _section(raw, "gate")
        gate = GateConfig(repositories=_string_list(gate_raw, "gate.repositories"))

        # ── Server ────────────────────────────────────────────────────────────
        server_raw = _section(raw, "server")
        host = server_raw.get("host", ServerConfig.host)
        if not isinstance(host, str) or not host:
            _config_error(f"CONFIG ERROR: Invalid server.host: {host!r}.")
        port = server_raw.get("port", ServerConfig.port)
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            _config_error(
                f"CONFIG ERROR: Invalid server.port: {port!r}. "
                "It must be an integer between 1 and 65535."
            )
        server = ServerConfig(host=host, port=port)

        # ── Auth ──────────────────────────────────────────────────────────────
        auth_raw = _section(raw, "auth")
        auth = AuthConfig(key_hashes=_string_list(auth_raw, "auth.key_hashes"))

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            xray=xray,
            gate=gate,
            server=server,
            auth=auth,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate the rescan gate configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes the error to stderr and raises SystemExit(1).
    Environment overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, non-mapping document, missing or
                       unsupported ``version``, invalid values, or an invalid
                       ``RESCAN_GATE_PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("RESCAN_GATE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("No config file found, using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _config_error(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "The rescan gate refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _config_error(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _config_error(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _config_error(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _config_error(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _config_error(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.server.host == "0.0.0.0":
        logger.warning(
            "SECURITY WARNING: the rescan gate is configured to bind on 0.0.0.0 "
            "(all interfaces). Make sure only the artifact repository can reach it."
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        xray_base_url=config.xray.base_url,
        gated_repositories=config.gate.repositories or "all",
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to *config* in place.

    Raises:
        SystemExit(1): If RESCAN_GATE_PORT is set but not a valid integer.
    """
    env_port = os.environ.get("RESCAN_GATE_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            _config_error(
                "CONFIG ERROR: RESCAN_GATE_PORT environment variable is not a valid "
                f"integer: '{env_port}'"
            )

    env_token = os.environ.get("RESCAN_GATE_XRAY_TOKEN")
    if env_token:
        config.xray.access_token = env_token


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    """Return the *name* section of *raw*; an absent or empty section is {}."""
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        _config_error(
            f"CONFIG ERROR: The '{name}' section must be a mapping, got: {value!r}"
        )
    return value


def _string_list(section: dict[str, Any], dotted: str) -> list[str]:
    values = section.get(dotted.rsplit(".", 1)[-1]) or []
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        _config_error(f"CONFIG ERROR: {dotted} must be a list of strings, got: {values!r}")
    return list(values)


def _config_error(msg: str) -> NoReturn:
    print(msg, file=sys.stderr)
    raise SystemExit(1)
