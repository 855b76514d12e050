"""Notification channels for newly ingested listings."""

from carwatch.notify.broadcast import NOTIFICATIONS_TOPIC, BroadcastHub
from carwatch.notify.fanout import Notifier, build_notifier

__all__ = ["NOTIFICATIONS_TOPIC", "BroadcastHub", "Notifier", "build_notifier"]
