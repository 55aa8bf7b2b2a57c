"""
Repair Tracker Services Module
==============================

Services layer untuk repair tracker.
Menggunakan dependency injection pattern untuk service management
"""

from ..config import settings
from .base import BaseService, transactional, action_result
from .exceptions import *

# Repair Order Domain
from .repair_orders import RepairOrderService

# Integration Domain
from .integration import (
    ERPClient, ERPSyncService, NotificationQueueService, SMTPEmailSender, TaskDispatcher
)

# Reporting Domain
from .reporting import DashboardService, ForensicsService, compute_stats

# Document Domain
from .documents import DriveClient, DocumentService

# Auth Domain
from .auth import AuthService

__all__ = [
    # Base Classes
    'BaseService', 'transactional', 'action_result',

    # Repair Order Domain
    'RepairOrderService',

    # Integration Domain
    'ERPClient', 'ERPSyncService', 'NotificationQueueService', 'SMTPEmailSender', 'TaskDispatcher',

    # Reporting Domain
    'DashboardService', 'ForensicsService', 'compute_stats',

    # Document Domain
    'DriveClient', 'DocumentService',

    # Auth Domain
    'AuthService',

    'ServiceRegistry', 'build_external_clients', 'close_external_clients',
]


def build_external_clients(config=None) -> dict:
    """
    Client external yang dipakai bareng semua request (dibuat sekali di
    lifespan app). ERP token cache dan connection pool requests ikut
    ter-share.
    """
    config = config or settings
    return {
        'erp_client': ERPClient.from_settings(config),
        'dispatcher': TaskDispatcher.from_settings(config),
        'email_sender': SMTPEmailSender(config.email_config),
        'drive_client': DriveClient.from_settings(config),
    }


def close_external_clients(clients: dict) -> None:
    for client in clients.values():
        close = getattr(client, 'close', None)
        if close is not None:
            close()


class ServiceRegistry:
    """
    Service Registry untuk dependency injection
    Mengelola lifecycle dan dependencies antar services

    Client external (ERP, task dispatcher, SMTP, drive) bisa di-inject;
    kalau tidak, dibuat dari settings.
    """

    def __init__(self, db_session, config=None, current_user=None, event_bus=None,
                 session_state=None, erp_client=None, dispatcher=None,
                 email_sender=None, drive_client=None):
        self.db_session = db_session
        self.config = config or settings
        self.user = current_user
        self.current_user = str(current_user.id) if current_user is not None else None
        self.event_bus = event_bus
        self.session_state = session_state

        self.erp_client = erp_client or ERPClient.from_settings(self.config)
        self.dispatcher = dispatcher or TaskDispatcher.from_settings(self.config)
        self.email_sender = email_sender or SMTPEmailSender(self.config.email_config)
        self.drive_client = drive_client or DriveClient.from_settings(self.config)

        self._services = {}

        # Initialize core services first
        self._init_core_services()

        # Initialize domain services
        self._init_domain_services()

    def _init_core_services(self):
        """Initialize core services yang diperlukan services lain"""

        self._services['auth'] = AuthService(
            db_session=self.db_session,
            secret_key=self.config.SECRET_KEY,
            algorithm=self.config.ALGORITHM,
            token_expiry_minutes=self.config.ACCESS_TOKEN_EXPIRE_MINUTES,
            oauth_config=self.config.oauth_config,
            current_user=self.current_user
        )

        self._services['notification'] = NotificationQueueService(
            db_session=self.db_session,
            current_user=self.current_user,
            event_bus=self.event_bus,
            dispatcher=self.dispatcher,
            email_sender=self.email_sender,
            email_config=self.config.email_config
        )

    def _init_domain_services(self):
        """Initialize domain services dengan dependencies"""

        self._services['repair_order'] = RepairOrderService(
            db_session=self.db_session,
            current_user=self.current_user,
            event_bus=self.event_bus,
            dispatcher=self.dispatcher,
            user_name=self.user.display_name if self.user is not None else None
        )

        self._services['erp_sync'] = ERPSyncService(
            db_session=self.db_session,
            erp_client=self.erp_client,
            current_user=self.current_user,
            event_bus=self.event_bus,
            page_size=self.config.ERP_PAGE_SIZE,
            request_delay=self.config.ERP_REQUEST_DELAY_SECONDS,
            dispatcher=self.dispatcher
        )

        self._services['dashboard'] = DashboardService(
            db_session=self.db_session,
            current_user=self.current_user,
            event_bus=self.event_bus,
            session_state=self.session_state
        )

        self._services['forensics'] = ForensicsService(
            db_session=self.db_session,
            current_user=self.current_user,
            event_bus=self.event_bus
        )

        self._services['document'] = DocumentService(
            db_session=self.db_session,
            drive_client=self.drive_client,
            access_token_provider=self._provider_access_token,
            current_user=self.current_user,
            event_bus=self.event_bus,
            max_upload_bytes=self.config.MAX_UPLOAD_BYTES
        )

    async def _provider_access_token(self) -> str:
        if self.user is None:
            raise AuthError()
        return await self.auth_service.get_provider_access_token(self.user.id)

    def get_service(self, service_name: str):
        """Get service by name"""
        if service_name not in self._services:
            raise ValueError(f"Service '{service_name}' not found")
        return self._services[service_name]

    # Convenience methods untuk frequently used services
    @property
    def auth_service(self) -> AuthService:
        return self._services['auth']

    @property
    def repair_order_service(self) -> RepairOrderService:
        return self._services['repair_order']

    @property
    def notification_service(self) -> NotificationQueueService:
        return self._services['notification']

    @property
    def erp_sync_service(self) -> ERPSyncService:
        return self._services['erp_sync']

    @property
    def dashboard_service(self) -> DashboardService:
        return self._services['dashboard']

    @property
    def forensics_service(self) -> ForensicsService:
        return self._services['forensics']

    @property
    def document_service(self) -> DocumentService:
        return self._services['document']
