"""
Integration Domain Services
===========================

Services untuk ERP sync, notification queue, dan client external
(ERP, SMTP, task dispatcher)
"""

from .erp_client import ERPClient
from .erp_service import ERPSyncService
from .notification_service import NotificationQueueService
from .email_sender import SMTPEmailSender
from .task_dispatcher import TaskDispatcher

__all__ = [
    'ERPClient',
    'ERPSyncService',
    'NotificationQueueService',
    'SMTPEmailSender',
    'TaskDispatcher'
]
