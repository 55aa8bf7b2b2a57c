"""
Repair Tracker Models Package
=============================

Semua model database, dikelompokkan per domain:
- Repair orders: RepairOrder, ActivityLog, StatusHistory, RepairOrderRelation, Shop
- Notifications: NotificationQueueItem
- User & auth: User, Account
- Integration: ERPSyncLog
"""

from .base import BaseModel, utcnow

from .repair_order import (
    RepairOrder,
    ActivityLog,
    StatusHistory,
    RepairOrderRelation,
    Shop,
)

from .notification import NotificationQueueItem

from .user import User, Account

from .integration import ERPSyncLog

__all__ = [
    'BaseModel', 'utcnow',
    'RepairOrder', 'ActivityLog', 'StatusHistory', 'RepairOrderRelation', 'Shop',
    'NotificationQueueItem',
    'User', 'Account',
    'ERPSyncLog',
]
