"""
Repair Tracker Routes Module
============================

API Routes untuk repair tracker, dikelompokkan per domain
"""

from .auth import auth_router
from .repair_orders import repair_order_router, document_router
from .notifications import notification_router
from .sync import sync_router
from .dashboard import dashboard_router, forensics_router

__all__ = [
    'auth_router', 'repair_order_router', 'document_router', 'notification_router',
    'sync_router', 'dashboard_router', 'forensics_router',
]
