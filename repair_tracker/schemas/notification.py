"""
Notification Queue Schemas
==========================

Payload notification di-discriminate berdasarkan ``type``:
EMAIL_DRAFT -> EmailDraftPayload, TASK_REMINDER -> TaskReminderPayload.
"""

from enum import Enum
from pydantic import BaseModel, EmailStr, Field, model_validator
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

from .base import BaseSchema, InputSchema


class NotificationType(str, Enum):
    EMAIL_DRAFT = "EMAIL_DRAFT"
    TASK_REMINDER = "TASK_REMINDER"


class NotificationStatus(str, Enum):
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SENT = "SENT"
    FAILED = "FAILED"


class EmailDraftPayload(BaseModel):
    to_address: EmailStr
    subject: str = Field(min_length=1, max_length=500)
    body: str = Field(min_length=1)
    cc: Optional[List[EmailStr]] = None


class TaskReminderPayload(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    due_date: str
    notes: Optional[str] = None


PAYLOAD_SCHEMAS: Dict[NotificationType, Type[BaseModel]] = {
    NotificationType.EMAIL_DRAFT: EmailDraftPayload,
    NotificationType.TASK_REMINDER: TaskReminderPayload,
}


def validate_payload(notification_type: NotificationType, payload: Any) -> BaseModel:
    """Validasi payload sesuai type. Raise pydantic ValidationError kalau tidak cocok."""
    schema = PAYLOAD_SCHEMAS[NotificationType(notification_type)]
    if isinstance(payload, schema):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    return schema.model_validate(payload)


class NotificationSchema(BaseSchema):
    user_id: int
    repair_order_id: int
    type: NotificationType
    status: NotificationStatus
    payload: Dict[str, Any]
    scheduled_for: Optional[datetime] = None
    outlook_message_id: Optional[str] = None
    outlook_conversation_id: Optional[str] = None


class PendingNotificationSchema(NotificationSchema):
    ro_number: int
    shop_name: Optional[str] = None


class NotificationCreateSchema(InputSchema):
    repair_order_id: int
    type: NotificationType
    payload: Dict[str, Any]
    scheduled_for: Optional[datetime] = None

    @model_validator(mode='after')
    def check_payload_matches_type(self):
        validated = validate_payload(self.type, self.payload)
        self.payload = validated.model_dump(exclude_none=True)
        return self


class TaskHandle(BaseModel):
    """Handle dari background task yang sudah di-trigger."""
    run_id: str
    public_access_token: Optional[str] = None


class DeliveryOutcome(BaseModel):
    notification_id: int
    action: str  # sent / skipped / failed
    message_id: Optional[str] = None
    reason: Optional[str] = None
