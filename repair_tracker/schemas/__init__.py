"""
Repair Tracker Schemas
======================

Pydantic V2 schemas untuk input/output API dan validasi response external.
"""

from .base import BaseSchema, InputSchema, PaginationSchema, ActionResult
from .repair_order import (
    RepairOrderSchema, RepairOrderCreateSchema, RepairOrderUpdateSchema,
    StatusUpdateSchema, NoteCreateSchema, RelationCreateSchema,
    ActivityLogSchema, StatusHistorySchema, RelatedOrderSchema,
)
from .notification import (
    NotificationType, NotificationStatus, EmailDraftPayload, TaskReminderPayload,
    NotificationSchema, PendingNotificationSchema, NotificationCreateSchema,
    TaskHandle, DeliveryOutcome, validate_payload,
)
from .erp import ERPOrderDetails, ERPOrderSummary
from .sync import SyncAction, SyncOutcome, SyncSummary, SyncRequestSchema, SyncAllRequestSchema
from .dashboard import DashboardStats, ForensicsReport
from .document import DocumentFile, DocumentUploadSchema, DocumentDeleteSchema
from .user import UserSchema, UserCreateSchema
