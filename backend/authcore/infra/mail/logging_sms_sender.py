from __future__ import annotations

import logging

from authcore.services._shared.ports.notifier import SmsSender

log = logging.getLogger(__name__)


class LoggingSmsSender(SmsSender):
    """
    Placeholder SMS transport that records the dispatch without its content.

    No SMS gateway is bundled; deployments that need real delivery plug an
    adapter implementing :class:`SmsSender` into the service container.
    """

    def send(self, to: str, body: str) -> bool:
        masked = f"***{to[-2:]}" if len(to) > 2 else "***"
        log.info("SMS not sent (no gateway configured): to=%s", masked, extra={"event": "sms_dev_mode"})
        return True
