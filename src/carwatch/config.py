"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class Config:
    """Application configuration. All values sourced from environment variables."""

    # Required
    database_path: str

    # Optional: Polling
    poll_interval_seconds: int = 10
    poll_on_startup: bool = True

    # Optional: Sources
    http_connect_timeout_seconds: float = 5.0
    http_read_timeout_seconds: float = 10.0
    http_user_agent: str = DEFAULT_USER_AGENT
    bazos_price_from: int = 10000
    bazos_price_to: int = 300000
    sauto_category_id: int = 838
    sauto_limit: int = 50

    # Optional: Telegram
    telegram_bot_token: str = ""
    telegram_bazos_chat_id: str = ""
    telegram_sauto_chat_id: str = ""
    telegram_parse_mode: str = "MarkdownV2"
    telegram_max_retries: int = 2

    # Optional: Web Push
    vapid_public_key: str = ""
    vapid_private_key: str = ""
    vapid_subject: str = "mailto:admin@carwatch.local"
    push_icon_path: str = "/icon.svg"
    push_timeout_seconds: float = 10.0
    default_price_text: str = "Price on request"

    # Optional: Application
    log_level: str = "INFO"
    log_format: str = "json"
    app_env: str = "production"


_REQUIRED_VARS = [
    "DATABASE_PATH",
]

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def load_config(env_path: str | Path | None = None) -> Config:
    """Load configuration from environment variables.

    Loads a .env file if present (for local development), then validates
    that all required variables are set. Raises ValueError listing any
    missing variables. Channel credentials are optional: a channel without
    them keeps failing its deliveries while ingestion carries on.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [var for var in _REQUIRED_VARS if not os.environ.get(var)]
    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    return Config(
        # Required
        database_path=os.environ["DATABASE_PATH"],
        # Optional: Polling
        poll_interval_seconds=int(os.environ.get("POLL_INTERVAL_SECONDS", "10")),
        poll_on_startup=_env_bool("POLL_ON_STARTUP", True),
        # Optional: Sources
        http_connect_timeout_seconds=float(
            os.environ.get("HTTP_CONNECT_TIMEOUT_SECONDS", "5")
        ),
        http_read_timeout_seconds=float(os.environ.get("HTTP_READ_TIMEOUT_SECONDS", "10")),
        http_user_agent=os.environ.get("HTTP_USER_AGENT", DEFAULT_USER_AGENT),
        bazos_price_from=int(os.environ.get("BAZOS_PRICE_FROM", "10000")),
        bazos_price_to=int(os.environ.get("BAZOS_PRICE_TO", "300000")),
        sauto_category_id=int(os.environ.get("SAUTO_CATEGORY_ID", "838")),
        sauto_limit=int(os.environ.get("SAUTO_LIMIT", "50")),
        # Optional: Telegram
        telegram_bot_token=os.environ.get("TELEGRAM_BOT_TOKEN", ""),
        telegram_bazos_chat_id=os.environ.get("TELEGRAM_BAZOS_CHAT_ID", ""),
        telegram_sauto_chat_id=os.environ.get("TELEGRAM_SAUTO_CHAT_ID", ""),
        telegram_parse_mode=os.environ.get("TELEGRAM_PARSE_MODE", "MarkdownV2"),
        telegram_max_retries=int(os.environ.get("TELEGRAM_MAX_RETRIES", "2")),
        # Optional: Web Push
        vapid_public_key=os.environ.get("VAPID_PUBLIC_KEY", ""),
        vapid_private_key=os.environ.get("VAPID_PRIVATE_KEY", ""),
        vapid_subject=os.environ.get("VAPID_SUBJECT", "mailto:admin@carwatch.local"),
        push_icon_path=os.environ.get("PUSH_ICON_PATH", "/icon.svg"),
        push_timeout_seconds=float(os.environ.get("PUSH_TIMEOUT_SECONDS", "10")),
        default_price_text=os.environ.get("DEFAULT_PRICE_TEXT", "Price on request"),
        # Optional: Application
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        log_format=os.environ.get("LOG_FORMAT", "json"),
        app_env=os.environ.get("APP_ENV", "production"),
    )
