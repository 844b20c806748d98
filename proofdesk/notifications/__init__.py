"""Outbound customer and staff notifications."""

from proofdesk.notifications.notifier import EmailNotifier, Notifier, NullNotifier, deliver, get_notifier

__all__ = ["EmailNotifier", "Notifier", "NullNotifier", "deliver", "get_notifier"]
