import os

from ...application.ports.notifier import Notifier
from ...config import Settings
from .background_notifier import BackgroundNotifier
from .email_notifier import EmailNotifier
from .logging_notifier import LoggingNotifier


def build_notifier(settings: Settings) -> Notifier:
    if os.environ.get("FIREBASE_AUTH_EMULATOR_HOST") or not settings.email_configured:
        return LoggingNotifier()
    return EmailNotifier(settings)


__all__ = ["BackgroundNotifier", "EmailNotifier", "LoggingNotifier", "build_notifier"]
