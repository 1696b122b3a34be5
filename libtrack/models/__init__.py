from libtrack.models.user import User
from libtrack.models.book import Book, ResearchPaper
from libtrack.models.transaction import Transaction
from libtrack.models.penalty import Penalty, PenaltyStatus
from libtrack.models.system_settings import SystemSettings
from libtrack.models.activity_log import ActivityLog
from libtrack.models.notification_log import NotificationLog

__all__ = [
    "User",
    "Book",
    "ResearchPaper",
    "Transaction",
    "Penalty",
    "PenaltyStatus",
    "SystemSettings",
    "ActivityLog",
    "NotificationLog",
]
