import logging

from fastapi import BackgroundTasks

from ...application.ports.notifier import Notifier

logger = logging.getLogger(__name__)


class BackgroundNotifier(Notifier):
    """Queues delivery until after the response is sent; delivery errors are logged and dropped."""

    def __init__(self, background_tasks: BackgroundTasks, delegate: Notifier):
        self.background_tasks = background_tasks
        self.delegate = delegate

    def notify(self, recipient: str, subject: str, body: str) -> None:
        self.background_tasks.add_task(self._deliver, recipient, subject, body)

    def _deliver(self, recipient: str, subject: str, body: str) -> None:
        try:
            self.delegate.notify(recipient, subject, body)
        except Exception as e:
            logger.warning(f"Notification to {recipient} failed: {e}")
