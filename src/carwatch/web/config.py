"""HTTP surface configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True)
class WebConfig:
    """Settings the API needs. Channel secrets stay in the poller Config."""

    database_path: str
    web_host: str = "0.0.0.0"
    web_port: int = 8080
    # Handed to browsers so they can create push subscriptions.
    vapid_public_key: str = ""
    log_level: str = "INFO"


def _port(raw: str) -> int:
    port = int(raw)
    if not 0 < port < 65536:
        raise ValueError(f"WEB_PORT out of range: {port}")
    return port


def load_web_config(env_path: str | Path | None = None) -> WebConfig:
    """Read WEB_HOST, WEB_PORT and VAPID_PUBLIC_KEY next to DATABASE_PATH.

    Raises ValueError when DATABASE_PATH is unset or WEB_PORT is invalid.
    """
    load_dotenv(dotenv_path=env_path)

    database_path = os.environ.get("DATABASE_PATH", "")
    if not database_path:
        raise ValueError("Missing required environment variable: DATABASE_PATH")

    return WebConfig(
        database_path=database_path,
        web_host=os.environ.get("WEB_HOST") or "0.0.0.0",
        web_port=_port(os.environ.get("WEB_PORT") or "8080"),
        vapid_public_key=os.environ.get("VAPID_PUBLIC_KEY", "").strip(),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )
