"""
Client Files Portal - Notification Ports

The blocking sender runs in a worker thread and every dispatch is
bounded by EMAIL_TIMEOUT_SECONDS.
"""

from __future__ import annotations

import asyncio
from typing import Set

from portal.config import settings
from portal.errors import InternalError
from portal.logging import get_logger
from portal.notifications.email import EmailMessage, EmailSender, redact_email


logger = get_logger(__name__)


class _Notifier:
    def __init__(self, sender: EmailSender, timeout: float = None) -> None:
        self.sender = sender
        self.timeout = timeout if timeout is not None else settings.EMAIL_TIMEOUT_SECONDS

    async def _deliver(self, message: EmailMessage) -> None:
        await asyncio.wait_for(
            asyncio.to_thread(self.sender.send, message),
            timeout=self.timeout,
        )


class BestEffortNotifier(_Notifier):
    """
    Must not block or fail the caller.

    Used for account-locked, welcome, registration and provisioning
    notices, where the triggering operation has already succeeded on its
    own terms. Delivery runs as a background task on the running loop;
    the request returns without waiting for it.
    """

    def __init__(self, sender: EmailSender, timeout: float = None) -> None:
        super().__init__(sender, timeout)
        # Strong references so pending deliveries are not garbage collected
        self._pending: Set[asyncio.Task] = set()

    def notify(self, message: EmailMessage) -> asyncio.Task:
        """Hand the message off; the returned task resolves to True if it was delivered."""
        task = asyncio.create_task(self._deliver_logged(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every delivery handed off so far (used at shutdown)."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _deliver_logged(self, message: EmailMessage) -> bool:
        try:
            await self._deliver(message)
            return True
        except Exception as e:
            logger.warning(
                "best_effort_email_failed",
                kind=message.kind,
                to=redact_email(message.to),
                error_type=type(e).__name__,
                error=str(e),
            )
            return False


class RequiredNotifier(_Notifier):
    """
    Delivery is part of the operation's outcome.

    Used for password-reset and verification requests: the user only
    benefits if the email reaches them, so failures propagate.
    """

    async def notify(self, message: EmailMessage) -> None:
        try:
            await self._deliver(message)
        except Exception as e:
            logger.error(
                "required_email_failed",
                kind=message.kind,
                to=redact_email(message.to),
                error_type=type(e).__name__,
                error=str(e),
            )
            raise InternalError("Failed to send email. Please try again later.") from e
