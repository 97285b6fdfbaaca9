import logging

from ...application.ports.notifier import Notifier

logger = logging.getLogger(__name__)


class LoggingNotifier(Notifier):
    """Writes notifications to the log instead of delivering them (local and emulator runs)."""

    def notify(self, recipient: str, subject: str, body: str) -> None:
        logger.info(f"EMAIL (not sent) to={recipient} subject={subject!r}")
