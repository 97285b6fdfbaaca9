from typing import Protocol


class Notifier(Protocol):
    def notify(self, recipient: str, subject: str, body: str) -> None:
        ...
