# This project was developed with assistance from AI tools.
"""Loan notification sink."""

import abc
import enum
import logging

logger = logging.getLogger(__name__)


class NotificationSeverity(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    NotificationSeverity.INFO: logging.INFO,
    NotificationSeverity.SUCCESS: logging.INFO,
    NotificationSeverity.WARNING: logging.WARNING,
    NotificationSeverity.ERROR: logging.ERROR,
}


class NotificationSink(abc.ABC):
    """Receives user-facing notifications about a loan."""

    @abc.abstractmethod
    async def notify(self, loan_id: int, severity: NotificationSeverity, message: str) -> None: ...


class LogNotificationSink(NotificationSink):
    """Default sink: writes notifications to the log."""

    async def notify(self, loan_id: int, severity: NotificationSeverity, message: str) -> None:
        severity = NotificationSeverity(severity)
        logger.log(_LOG_LEVELS[severity], "Loan %s [%s]: %s", loan_id, severity.value, message)
