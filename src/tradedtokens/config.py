"""
Configuration via environment variables (TRADEDTOKENS_*), with .env support.
CLI options take precedence over anything loaded here.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# GPv2Settlement, same address on every chain CoW Protocol is deployed to
DEFAULT_SETTLEMENT = "0x9008D19f58AAbD9eD0D60971565AA8510560ab41"

_PREFIX = "TRADEDTOKENS_"


def _get_env(key: str, default: str | None = None) -> str | None:
    return os.getenv(_PREFIX + key, default)


def _get_env_int(key: str, default: int) -> int:
    raw = _get_env(key, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{_PREFIX}{key} must be an integer, got {raw!r}") from None


def _get_env_bool(key: str, default: bool) -> bool:
    raw = _get_env(key)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(slots=True, frozen=True)
class Settings:
    rpc_url: str | None = None
    settlement: str = DEFAULT_SETTLEMENT
    timeout_s: int = 20
    max_conn: int = 64
    concurrency: int = 4
    batch: bool = True
    log_level: str = "INFO"


def load_settings(dotenv: bool = True) -> Settings:
    if dotenv:
        load_dotenv()
    return Settings(
        rpc_url=_get_env("RPC_URL"),
        settlement=_get_env("SETTLEMENT", DEFAULT_SETTLEMENT),
        timeout_s=_get_env_int("TIMEOUT_S", 20),
        max_conn=_get_env_int("MAX_CONN", 64),
        concurrency=_get_env_int("CONCURRENCY", 4),
        batch=_get_env_bool("BATCH", True),
        log_level=(_get_env("LOG_LEVEL", "INFO") or "INFO").upper(),
    )
