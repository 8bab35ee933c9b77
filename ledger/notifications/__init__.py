"""Notifications package."""

from ledger.notifications.center import NotificationCenter

__all__ = ["NotificationCenter"]
