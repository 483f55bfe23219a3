"""
Outbound code delivery with an explicit failure policy.

Delivery always happens *after* the state change it announces has been
committed. What a failed send means for the caller is decided here:

- ``best_effort``: log a warning and report success of the state change.
- ``strict``: raise :class:`DeliveryError` so the client knows to retry.
"""

from __future__ import annotations

import logging
from enum import Enum

from authcore.core.logger import redact_email
from authcore.services._shared.errors import DeliveryError
from authcore.services._shared.ports.notifier import EmailSender, SmsSender

log = logging.getLogger(__name__)


class DeliveryPolicy(str, Enum):
    BEST_EFFORT = "best_effort"
    STRICT = "strict"

    @classmethod
    def parse(cls, raw: str | DeliveryPolicy) -> DeliveryPolicy:
        try:
            return cls(str(getattr(raw, "value", raw)).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown delivery failure policy: {raw!r}") from exc


def _redact_phone(number: str) -> str:
    digits = number.strip()
    return f"***{digits[-2:]}" if len(digits) > 2 else "***"


class CodeDispatcher:
    """
    Send one-time codes and account notices by email or SMS.

    :param email_sender: Email transport.
    :param sms_sender: SMS transport.
    :param policy: Failure policy (see module docstring).
    """

    def __init__(
        self,
        *,
        email_sender: EmailSender,
        sms_sender: SmsSender,
        policy: DeliveryPolicy = DeliveryPolicy.BEST_EFFORT,
    ) -> None:
        self.email_sender = email_sender
        self.sms_sender = sms_sender
        self.policy = policy

    def send_email(self, to: str, subject: str, body: str, *, user_id: int | None = None) -> bool:
        """
        Deliver an email.

        :returns: ``True`` when the transport accepted the message.
        :raises DeliveryError: On failure under the ``strict`` policy.
        """
        delivered = self.email_sender.send(to, subject, body)
        if not delivered:
            self._on_failure("email", redact_email(to), user_id)
        return delivered

    def send_sms(self, to: str, body: str, *, user_id: int | None = None) -> bool:
        """
        Deliver an SMS.

        :returns: ``True`` when the transport accepted the message.
        :raises DeliveryError: On failure under the ``strict`` policy.
        """
        delivered = self.sms_sender.send(to, body)
        if not delivered:
            self._on_failure("sms", _redact_phone(to), user_id)
        return delivered

    def _on_failure(self, channel: str, target: str, user_id: int | None) -> None:
        log.warning(
            "Delivery failed to %s",
            target,
            extra={"event": "delivery_failed", "channel": channel, "user_id": user_id},
        )
        if self.policy is DeliveryPolicy.STRICT:
            raise DeliveryError(channel)
