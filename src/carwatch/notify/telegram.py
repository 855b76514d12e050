"""Telegram Bot API client for per-listing messages."""

from __future__ import annotations

import html
import logging
import re
import time
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"

_TOO_MANY_REQUESTS = 429
# Characters MarkdownV2 reserves in text, and the two it reserves inside (url).
_MARKDOWN_V2_TEXT_RE = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")
_MARKDOWN_V2_URL_RE = re.compile(r"([)\\])")
_MARKDOWN_TEXT_RE = re.compile(r"([_*`])")


@dataclass(frozen=True)
class SendResult:
    """Result of a Telegram sendMessage call."""

    ok: bool
    message_id: int | None = None
    error: str | None = None


def format_listing_link(title: str, url: str, parse_mode: str = "MarkdownV2") -> str:
    """Render a listing as a clickable title in the given parse mode.

    Title characters that carry markup meaning are escaped. Without a known
    parse mode the title and URL go on separate lines.
    """
    mode = parse_mode.lower()
    if mode == "markdownv2":
        safe_title = _MARKDOWN_V2_TEXT_RE.sub(r"\\\1", title)
        safe_url = _MARKDOWN_V2_URL_RE.sub(r"\\\1", url)
        return f"[{safe_title}]({safe_url})"
    if mode == "markdown":
        # Legacy Markdown cannot escape brackets inside link text.
        plain = title.replace("[", "(").replace("]", ")")
        safe_title = _MARKDOWN_TEXT_RE.sub(r"\\\1", plain)
        return f"[{safe_title}]({url})"
    if mode == "html":
        return f'<a href="{html.escape(url, quote=True)}">{html.escape(title)}</a>'
    return f"{title}\n{url}"


def _is_permanent(error_code: object) -> bool:
    """4xx answers other than rate limiting will not succeed on retry."""
    return (
        isinstance(error_code, int)
        and 400 <= error_code < 500
        and error_code != _TOO_MANY_REQUESTS
    )


def send_message(
    bot_token: str,
    chat_id: str,
    text: str,
    *,
    parse_mode: str = "MarkdownV2",
    max_retries: int = 2,
) -> SendResult:
    """Send one message, retrying transient failures with 1s, 2s, 4s... backoff.

    A permanent rejection (bad markup, unknown chat) is returned at once.
    Never raises.
    """
    if not bot_token or not chat_id:
        logger.error("Telegram is not configured (missing bot token or chat id)")
        return SendResult(ok=False, error="Telegram bot token or chat id not configured")

    url = f"{TELEGRAM_API_BASE}/bot{bot_token}/sendMessage"
    payload = {"chat_id": chat_id, "text": text}
    if parse_mode:
        payload["parse_mode"] = parse_mode

    last_error = ""
    for attempt in range(max_retries):
        try:
            data = httpx.post(url, json=payload, timeout=15).json()
        except Exception as exc:
            last_error = str(exc)
            logger.warning(
                "Telegram request failed (attempt %d/%d): %s",
                attempt + 1, max_retries, last_error,
            )
        else:
            if data.get("ok"):
                msg_id = data["result"]["message_id"]
                logger.info("Telegram message sent: chat=%s message_id=%d", chat_id, msg_id)
                return SendResult(ok=True, message_id=msg_id)
            last_error = data.get("description", "Unknown Telegram error")
            if _is_permanent(data.get("error_code")):
                logger.error("Telegram rejected message to %s: %s", chat_id, last_error)
                return SendResult(ok=False, error=last_error)
            logger.warning(
                "Telegram API error (attempt %d/%d): %s",
                attempt + 1, max_retries, last_error,
            )

        if attempt < max_retries - 1:
            time.sleep(2 ** attempt)

    return SendResult(ok=False, error=last_error)
