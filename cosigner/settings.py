"""
Runtime Configuration
All options come from environment variables. The three secrets
(CREDENTIALS, DATABASE_URL, NANI_AI_KEY) are required; a missing one is a
fatal startup error.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from cosigner.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_ORACLE_URL = "http://nani.ooo/api/chat"
DEFAULT_TARGET_SENDER = "0x0000000000001d8a2e7bf6bc369525a2654aa298"
DEFAULT_VALIDATOR_REGISTRY = Path(__file__).resolve().parent / "validators.json"


def _required(env: Mapping[str, str], name: str) -> str:
    value = (env.get(name) or "").strip()
    if not value:
        raise ConfigurationError(f"Missing required setting: {name}")
    return value


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw, 0)
    except ValueError:
        logger.warning("Invalid integer for %s: %s", name, raw)
        return default


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid number for %s: %s", name, raw)
        return default


@dataclass(frozen=True)
class Settings:
    credentials: str = field(repr=False)
    database_url: str = field(repr=False)
    oracle_api_key: str = field(repr=False)
    oracle_url: str = DEFAULT_ORACLE_URL
    target_sender: str = DEFAULT_TARGET_SENDER
    window_hours: int = 24
    oracle_timeout_seconds: float = 60.0
    rpc_timeout_seconds: float = 15.0
    db_connect_timeout_seconds: int = 10
    db_statement_timeout_ms: int = 30000
    db_pool_max: int = 20
    rpc_urls: dict[str, str] = field(default_factory=dict)
    validator_registry_path: Path = DEFAULT_VALIDATOR_REGISTRY

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env

        rpc_urls = {}
        for chain in ("eth", "arbitrum", "base"):
            url = (env.get(f"RPC_URL_{chain.upper()}") or "").strip()
            if url:
                rpc_urls[chain] = url

        registry = (env.get("VALIDATOR_REGISTRY_PATH") or "").strip()

        window_hours = _int(env, "PROPOSAL_WINDOW_HOURS", 24)
        if window_hours <= 0:
            raise ConfigurationError("PROPOSAL_WINDOW_HOURS must be positive")

        pool_max = _int(env, "DB_POOL_MAX", 20)
        if pool_max < 1:
            raise ConfigurationError("DB_POOL_MAX must be at least 1")

        return cls(
            credentials=_required(env, "CREDENTIALS"),
            database_url=_required(env, "DATABASE_URL"),
            oracle_api_key=_required(env, "NANI_AI_KEY"),
            oracle_url=(env.get("ORACLE_URL") or DEFAULT_ORACLE_URL).strip(),
            target_sender=(env.get("TARGET_SENDER") or DEFAULT_TARGET_SENDER).strip(),
            window_hours=window_hours,
            oracle_timeout_seconds=_float(env, "ORACLE_TIMEOUT_SECONDS", 60.0),
            rpc_timeout_seconds=_float(env, "RPC_TIMEOUT_SECONDS", 15.0),
            db_connect_timeout_seconds=_int(env, "DB_CONNECT_TIMEOUT_SECONDS", 10),
            db_statement_timeout_ms=_int(env, "DB_STATEMENT_TIMEOUT_MS", 30000),
            db_pool_max=pool_max,
            rpc_urls=rpc_urls,
            validator_registry_path=Path(registry) if registry else DEFAULT_VALIDATOR_REGISTRY,
        )
