"""
External collaborators (AI, mail, view cache)
"""

from .dashboard import DashboardInvalidator, LoggingDashboardInvalidator
from .mailer import Notifier, SendResult, SmtpNotifier

__all__ = [
    "DashboardInvalidator",
    "LoggingDashboardInvalidator",
    "Notifier",
    "SendResult",
    "SmtpNotifier",
]
