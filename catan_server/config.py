from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Literal, Mapping, Optional

LogFormat = Literal["console", "json"]

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:3001"]


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"
    log_format: LogFormat = "console"
    debug_rolls: bool = False
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    chat_limit: int = 100
    lock_after_finish: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        env = os.environ if environ is None else environ
        cfg = cls()
        cfg.host = env.get("CATAN_HOST", cfg.host)
        cfg.port = int(env.get("PORT", cfg.port))
        cfg.log_level = env.get("CATAN_LOG_LEVEL", cfg.log_level).upper()
        fmt = env.get("CATAN_LOG_FORMAT", cfg.log_format).lower()
        if fmt not in ("console", "json"):
            raise ValueError(f"CATAN_LOG_FORMAT must be console or json, got {fmt!r}")
        cfg.log_format = fmt  # type: ignore[assignment]
        cfg.debug_rolls = env.get("CATAN_DEBUG_ROLLS") == "1"
        origins = env.get("CATAN_CORS_ORIGINS")
        if origins:
            cfg.cors_origins = [o.strip() for o in origins.split(",") if o.strip()]
        cfg.chat_limit = int(env.get("CATAN_CHAT_LIMIT", cfg.chat_limit))
        cfg.lock_after_finish = _flag(env.get("CATAN_LOCK_AFTER_FINISH"), cfg.lock_after_finish)
        return cfg
