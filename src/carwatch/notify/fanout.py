"""Fan-out of new listings to broadcast, push and Telegram channels."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from carwatch.config import Config
from carwatch.ingestion.normalize import Listing, Source
from carwatch.notify.broadcast import NOTIFICATIONS_TOPIC, BroadcastHub
from carwatch.notify.push import PushResult, build_push_payload, send_push
from carwatch.notify.telegram import SendResult, format_listing_link, send_message
from carwatch.storage.subscriptions import (
    PushSubscription,
    delete_subscription,
    list_subscriptions,
)

logger = logging.getLogger(__name__)


class NotificationChannel(ABC):
    """One independent delivery channel."""

    name: str = "channel"

    @abstractmethod
    def deliver(self, listing: Listing) -> None:
        """Deliver a listing. May raise; the Notifier isolates failures."""


def broadcast_event(listing: Listing) -> dict:
    return {
        "type": "new_listing",
        "source": listing.source.value if listing.source is not None else None,
        "title": listing.title,
        "price_display": listing.price_display,
        "identity_url": listing.identity_url,
        "image_url": listing.image_url,
        "locality": listing.locality,
    }


class BroadcastChannel(NotificationChannel):
    name = "broadcast"

    def __init__(self, hub: BroadcastHub, topic: str = NOTIFICATIONS_TOPIC) -> None:
        self._hub = hub
        self._topic = topic

    def deliver(self, listing: Listing) -> None:
        count = self._hub.publish(self._topic, broadcast_event(listing))
        logger.debug("Broadcast %s to %d listener(s)", listing.identity_url, count)


class PushChannel(NotificationChannel):
    """Sends a Web Push message to every stored subscription.

    Subscriptions whose endpoint reports 404/410 are deleted; any other
    failure only gets logged.
    """

    name = "push"

    def __init__(self, database_path: str, config: Config) -> None:
        self._database_path = database_path
        self._config = config

    def deliver(self, listing: Listing) -> list[PushResult]:
        subscriptions = list_subscriptions(self._database_path)
        if not subscriptions:
            return []

        if not self._config.vapid_private_key:
            logger.error(
                "Web Push is not configured (VAPID_PRIVATE_KEY missing); "
                "%d subscription(s) not notified", len(subscriptions),
            )
            return []

        payload = build_push_payload(
            listing,
            icon=self._config.push_icon_path,
            default_price_text=self._config.default_price_text,
        )
        results: list[PushResult] = []
        for subscription in subscriptions:
            try:
                results.append(self._deliver_one(subscription, payload))
            except Exception:
                logger.exception("Push delivery to subscription %s failed", subscription.id)
        return results

    def _deliver_one(self, subscription: PushSubscription, payload: dict) -> PushResult:
        result = send_push(
            subscription,
            payload,
            vapid_private_key=self._config.vapid_private_key,
            vapid_subject=self._config.vapid_subject,
            timeout=self._config.push_timeout_seconds,
        )
        if result.ok:
            return result
        logger.warning(
            "Push to subscription %s failed (status=%s): %s",
            subscription.id, result.status_code, result.error,
        )
        if result.gone:
            delete_subscription(self._database_path, subscription.id)
            logger.info("Removed expired push subscription %s", subscription.id)
        return result


class TelegramChannel(NotificationChannel):
    name = "telegram"

    def __init__(self, config: Config) -> None:
        self._config = config
        self._chat_ids = {
            Source.BAZOS: config.telegram_bazos_chat_id,
            Source.SAUTO: config.telegram_sauto_chat_id,
        }

    def deliver(self, listing: Listing) -> SendResult:
        chat_id = self._chat_ids.get(listing.source, "") if listing.source else ""
        result = send_message(
            self._config.telegram_bot_token,
            chat_id,
            format_listing_link(
                listing.title, listing.identity_url, self._config.telegram_parse_mode
            ),
            parse_mode=self._config.telegram_parse_mode,
            max_retries=self._config.telegram_max_retries,
        )
        if not result.ok:
            logger.warning(
                "Telegram notification for %s failed: %s", listing.identity_url, result.error
            )
        return result


class Notifier:
    """Delivers each listing to every channel, isolating channel failures."""

    def __init__(self, channels: list[NotificationChannel]) -> None:
        self._channels = list(channels)

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._channels)

    def notify(self, listing: Listing) -> None:
        for channel in self._channels:
            try:
                channel.deliver(listing)
            except Exception:
                logger.exception(
                    "Channel '%s' failed for %s", channel.name, listing.identity_url
                )


def build_notifier(config: Config, hub: BroadcastHub) -> Notifier:
    """Wire the standard channel set: broadcast first, then push, then Telegram."""
    return Notifier(
        [
            BroadcastChannel(hub),
            PushChannel(config.database_path, config),
            TelegramChannel(config),
        ]
    )
