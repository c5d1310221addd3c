"""
Client Files Portal - Outbound Notifications

Two delivery contracts over one email sender:
- BestEffortNotifier: sends in the background, failures are logged (lock, welcome, provisioning)
- RequiredNotifier: failures raise InternalError (password reset, verification)
"""

from portal.notifications.email import EmailMessage, EmailSender, EmailDeliveryError, SmtpEmailSender
from portal.notifications.notifier import BestEffortNotifier, RequiredNotifier

__all__ = [
    "EmailMessage",
    "EmailSender",
    "EmailDeliveryError",
    "SmtpEmailSender",
    "BestEffortNotifier",
    "RequiredNotifier",
]
