"""Notification package."""

from zen_ledger.notifications.center import NotificationCenter, Subscriber

__all__ = ["NotificationCenter", "Subscriber"]
