"""NotificationDispatcher — best-effort delivery of a pipeline's result mail."""

from __future__ import annotations

from typing import Callable

import structlog

from scanstation.models import PipelineOutcome
from scanstation.notification.mailer import Mailer
from scanstation.notification.template import EmailMessage

log = structlog.get_logger("scanstation.notification")

Renderer = Callable[[PipelineOutcome], EmailMessage]


class NotificationDispatcher:
    """Render an outcome with the pipeline's renderer and hand it to the mailer.

    Delivery never affects the outcome: every error is logged and reported
    as a ``False`` return.
    """

    def __init__(self, mailer: Mailer, renderer: Renderer) -> None:
        self._mailer = mailer
        self._renderer = renderer

    async def notify(self, outcome: PipelineOutcome, recipients: list[str]) -> bool:
        if not recipients:
            log.debug("notification.skipped", reason="no recipients")
            return False

        try:
            message = self._renderer(outcome)
            await self._mailer.send(
                recipients,
                message.subject,
                message.body,
                subtype=message.subtype,
                attachments=list(message.attachments),
            )
        except Exception:
            log.error(
                "notification.failed",
                recipients=recipients,
                status=outcome.status.value,
                exc_info=True,
            )
            return False

        log.info("notification.sent", recipients=recipients, subject=message.subject)
        return True
