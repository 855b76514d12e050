"""Web Push delivery (RFC 8291 payload encryption, VAPID auth) via pywebpush."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from pywebpush import WebPushException, webpush

from carwatch.ingestion.normalize import Listing, Source
from carwatch.storage.subscriptions import PushSubscription

logger = logging.getLogger(__name__)

# Push services answer these for endpoints that will never accept messages again.
_GONE_STATUS_CODES = frozenset({404, 410})

_TTL_SECONDS = 3600


@dataclass(frozen=True)
class PushResult:
    """Outcome of one delivery to one subscription."""

    subscription_id: str
    ok: bool
    status_code: int | None = None
    gone: bool = False
    error: str | None = None


def build_push_payload(listing: Listing, *, icon: str, default_price_text: str) -> dict:
    source = listing.source.display_name if isinstance(listing.source, Source) else "Carwatch"
    price = listing.price_display or default_price_text
    return {
        "title": f"{source} - New Listing",
        "body": f"{listing.title}\n{price}",
        "icon": icon,
        "image": listing.image_url,
        "url": listing.identity_url,
    }


def send_push(
    subscription: PushSubscription,
    payload: dict,
    *,
    vapid_private_key: str,
    vapid_subject: str,
    timeout: float = 10.0,
) -> PushResult:
    """Deliver one encrypted push message. Returns a structured result — never raises."""
    try:
        response = webpush(
            subscription_info=subscription.to_subscription_info(),
            data=json.dumps(payload),
            vapid_private_key=vapid_private_key,
            vapid_claims={"sub": vapid_subject},
            ttl=_TTL_SECONDS,
            timeout=timeout,
        )
    except WebPushException as exc:
        status = exc.response.status_code if exc.response is not None else None
        return PushResult(
            subscription_id=subscription.id,
            ok=False,
            status_code=status,
            gone=status in _GONE_STATUS_CODES,
            error=str(exc),
        )
    except Exception as exc:
        return PushResult(subscription_id=subscription.id, ok=False, error=str(exc))

    status = getattr(response, "status_code", None)
    return PushResult(subscription_id=subscription.id, ok=True, status_code=status)
