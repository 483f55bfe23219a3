from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol


class EmailSender(Protocol):
    """Outbound email transport. Returns ``False`` when delivery failed."""

    def send(self, to: str, subject: str, body: str) -> bool: ...


class SmsSender(Protocol):
    """Outbound SMS transport. Returns ``False`` when delivery failed."""

    def send(self, to: str, body: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class SentMessage:
    to: str
    subject: str
    body: str


class _RecordingSender:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.outbox: list[SentMessage] = []
        self._lock = threading.Lock()

    def _record(self, message: SentMessage) -> bool:
        if self.fail:
            return False
        with self._lock:
            self.outbox.append(message)
        return True

    def last_to(self, to: str) -> SentMessage | None:
        """Return the newest message addressed to ``to``."""
        for message in reversed(self.outbox):
            if message.to == to:
                return message
        return None


class InMemoryEmailSender(_RecordingSender, EmailSender):
    """Keeps messages in :attr:`outbox`; ``fail=True`` simulates an outage."""

    def send(self, to: str, subject: str, body: str) -> bool:
        return self._record(SentMessage(to=to, subject=subject, body=body))


class InMemorySmsSender(_RecordingSender, SmsSender):
    """Keeps messages in :attr:`outbox`; ``fail=True`` simulates an outage."""

    def send(self, to: str, body: str) -> bool:
        return self._record(SentMessage(to=to, subject="", body=body))
