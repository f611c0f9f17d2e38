"""
Horizon sidecar configuration.

This module centralizes tunables for the bridging core and its gateway:
- native chain JSON-RPC endpoint & transport timeout
- block API endpoint (decoded finalized blocks and events) and the follower loop
- protocol-version tag (selects RPC namespace and event markers)
- storage-key hash source
- DB URI (sqlite / memory understood by sidecar.db)
- gateway host/port, CORS, logging, metrics

Environment variables (examples):
  SIDECAR_CHAIN_RPC_URL=http://127.0.0.1:9944
  SIDECAR_CHAIN_RPC_TIMEOUT=30
  SIDECAR_BLOCK_API_URL=http://127.0.0.1:8080
  SIDECAR_FOLLOW_ENABLED=true
  SIDECAR_FOLLOW_INTERVAL=6
  SIDECAR_FOLLOW_START_HEIGHT=
  SIDECAR_FOLLOW_MAX_BLOCKS=100
  SIDECAR_PROTOCOL=cosmos
  SIDECAR_HASH_KEY_SOURCE=computed
  SIDECAR_DB_URI=sqlite:///~/.sidecar/sidecar.db
  SIDECAR_HOST=0.0.0.0
  SIDECAR_PORT=1317
  SIDECAR_CORS_ORIGINS=["http://localhost:5173"]
  SIDECAR_CHAIN_ID=dev
  SIDECAR_CHAIN_NAME=Horizon
  SIDECAR_LOG_LEVEL=INFO
  SIDECAR_METRICS_ENABLED=true

Notes
- JSON-like env values accept either JSON or a comma-separated list.
- Paths beginning with ~ are expanded.
- This module has no external deps (no dotenv). Use your process manager to inject env.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional

from .errors import ConfigError

HASH_KEY_SOURCES = ("computed", "native")


def _expand_db_uri(uri: str) -> str:
    """
    Expand ~/… in sqlite URIs while preserving scheme.
    Accepts:
      - sqlite:///~/.sidecar/sidecar.db
      - sqlite:///var/lib/sidecar/sidecar.db
      - memory://
    A bare file path is converted to a sqlite URI.
    """
    if uri.startswith("memory://"):
        return uri
    if ":///" not in uri:
        return "sqlite:///" + str(Path(uri).expanduser())
    scheme, rest = uri.split(":///", 1)
    if scheme == "sqlite" and rest.startswith("~"):
        return f"{scheme}:///{Path(rest).expanduser()}"
    return uri


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v is not None else default


def _env_bool(name: str, default: bool) -> bool:
    v = _env(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    v = _env(name)
    if v is None:
        return default
    try:
        return int(v.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer", value=v)


def _env_opt_int(name: str) -> Optional[int]:
    v = _env(name)
    if v is None or not v.strip():
        return None
    return _env_int(name, 0)


def _env_float(name: str, default: float) -> float:
    v = _env(name)
    if v is None:
        return default
    try:
        return float(v.strip())
    except ValueError:
        raise ConfigError(f"{name} must be a number", value=v)


def _env_list(name: str, default: List[str]) -> List[str]:
    """
    Parse JSON array or comma-separated string into a list of strings.
    """
    v = _env(name)
    if v is None or v.strip() == "":
        return list(default)
    s = v.strip()
    if s.startswith("["):
        try:
            parsed = json.loads(s)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return [str(x) for x in parsed]
    return [item.strip() for item in s.split(",") if item.strip()]


@dataclass(frozen=True)
class ChainConfig:
    rpc_url: str = "http://127.0.0.1:9944"
    timeout: float = 30.0
    block_api_url: str = "http://127.0.0.1:8080"
    protocol: str = "cosmos"
    chain_id: str = "dev"
    chain_name: str = "Horizon"


@dataclass(frozen=True)
class FollowerConfig:
    """
    Finalized-block follower. `start_height` applies only before the first
    block has been processed; afterwards the cursor in the store wins. None
    starts at the finalized head seen on startup.
    """

    enabled: bool = True
    interval: float = 6.0
    start_height: Optional[int] = None
    max_blocks_per_poll: int = 100

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ConfigError("follower interval must be positive", value=self.interval)
        if self.max_blocks_per_poll < 1:
            raise ConfigError("follower max_blocks_per_poll must be >= 1", value=self.max_blocks_per_poll)
        if self.start_height is not None and self.start_height < 0:
            raise ConfigError("follower start_height must be >= 0", value=self.start_height)


@dataclass(frozen=True)
class GatewayConfig:
    host: str = "127.0.0.1"
    port: int = 1317
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    metrics_enabled: bool = True


@dataclass(frozen=True)
class SidecarConfig:
    chain: ChainConfig = field(default_factory=ChainConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    follower: FollowerConfig = field(default_factory=FollowerConfig)
    db_uri: str = "sqlite:///~/.sidecar/sidecar.db"
    hash_key_source: str = "computed"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.hash_key_source not in HASH_KEY_SOURCES:
            raise ConfigError(
                "hash_key_source must be one of " + ", ".join(HASH_KEY_SOURCES),
                value=self.hash_key_source,
            )

    @property
    def base_url(self) -> str:
        return f"http://{self.gateway.host}:{self.gateway.port}"

    def with_overrides(self, **changes) -> "SidecarConfig":
        return replace(self, **changes)


def load() -> SidecarConfig:
    """
    Build a SidecarConfig from environment variables with sensible defaults.
    """
    chain = ChainConfig(
        rpc_url=_env("SIDECAR_CHAIN_RPC_URL", "http://127.0.0.1:9944") or "",
        timeout=_env_float("SIDECAR_CHAIN_RPC_TIMEOUT", 30.0),
        block_api_url=(_env("SIDECAR_BLOCK_API_URL", "http://127.0.0.1:8080") or "").strip(),
        protocol=(_env("SIDECAR_PROTOCOL", "cosmos") or "cosmos").strip().lower(),
        chain_id=_env("SIDECAR_CHAIN_ID", "dev") or "dev",
        chain_name=_env("SIDECAR_CHAIN_NAME", "Horizon") or "Horizon",
    )
    gateway = GatewayConfig(
        host=_env("SIDECAR_HOST", "127.0.0.1") or "127.0.0.1",
        port=_env_int("SIDECAR_PORT", 1317),
        cors_origins=_env_list("SIDECAR_CORS_ORIGINS", ["*"]),
        metrics_enabled=_env_bool("SIDECAR_METRICS_ENABLED", True),
    )
    follower = FollowerConfig(
        enabled=_env_bool("SIDECAR_FOLLOW_ENABLED", True),
        interval=_env_float("SIDECAR_FOLLOW_INTERVAL", 6.0),
        start_height=_env_opt_int("SIDECAR_FOLLOW_START_HEIGHT"),
        max_blocks_per_poll=_env_int("SIDECAR_FOLLOW_MAX_BLOCKS", 100),
    )
    return SidecarConfig(
        chain=chain,
        gateway=gateway,
        follower=follower,
        db_uri=_expand_db_uri(_env("SIDECAR_DB_URI", "sqlite:///~/.sidecar/sidecar.db") or ""),
        hash_key_source=(_env("SIDECAR_HASH_KEY_SOURCE", "computed") or "").strip().lower(),
        log_level=(_env("SIDECAR_LOG_LEVEL", "INFO") or "INFO").upper(),
    )


__all__ = [
    "ChainConfig",
    "GatewayConfig",
    "FollowerConfig",
    "SidecarConfig",
    "HASH_KEY_SOURCES",
    "load",
]
