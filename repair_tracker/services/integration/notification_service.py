"""
Notification Queue Service
==========================

Approval queue untuk aksi outbound (email ke shop, task reminder).

Semua aksi outbound masuk dulu sebagai PENDING_APPROVAL. Setelah
di-approve, background task ``send-approved-email`` memanggil
``deliver_approved`` untuk benar-benar mengirim.

Operasi dasar (``enqueue``, ``transition``, ``fetch_by_id`` ...) tidak butuh
session user supaya bisa dipakai dari background job.
"""

import asyncio
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from jinja2 import Template
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..base import BaseService, transactional, action_result
from ..exceptions import ConflictError, ExternalServiceError, NotFoundError, ValidationError
from ..reporting.stats import status_group_condition
from ...dates import days_since, format_date_us, parse_date
from ...events import EventBus, EventType
from ...models import NotificationQueueItem, RepairOrder, Shop, User
from ...schemas import (
    DeliveryOutcome, EmailDraftPayload, NotificationCreateSchema, NotificationSchema,
    NotificationStatus, NotificationType, PendingNotificationSchema, TaskHandle,
    TaskReminderPayload, validate_payload,
)
from ...statuses import StatusGroup
from .task_dispatcher import SEND_APPROVED_EMAIL

FOLLOW_UP_INTERVAL_DAYS = 7

FINAL_STATUSES = (
    NotificationStatus.SENT.value,
    NotificationStatus.REJECTED.value,
    NotificationStatus.FAILED.value,
)


class NotificationQueueService(BaseService):
    """Service untuk notification approval queue"""

    def __init__(self, db_session: AsyncSession, current_user: str = None,
                 event_bus: Optional[EventBus] = None, dispatcher=None,
                 email_sender=None, email_config: Dict[str, Any] = None):
        super().__init__(db_session, current_user, event_bus)
        self.dispatcher = dispatcher
        self.email_sender = email_sender
        self.email_config = email_config or {}
        self.email_templates = self._load_email_templates()

    # ------------------------------------------------------------------
    # Core queue operations
    # ------------------------------------------------------------------

    async def enqueue(self, payload: Any, notification_type: NotificationType, owner: int,
                      related_order: int, status: NotificationStatus = None,
                      scheduled_for=None) -> int:
        """
        Masukkan item ke queue dan return id-nya.

        Kalau target status PENDING_APPROVAL dan RO yang sama sudah punya item
        pending, id item yang lama yang dikembalikan (tidak insert baru).
        """
        try:
            validated = validate_payload(notification_type, payload)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid {NotificationType(notification_type).value} payload",
                field='payload',
                details={'errors': [
                    f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
                ]},
            )

        status = NotificationStatus(status or NotificationStatus.PENDING_APPROVAL)
        if status is NotificationStatus.PENDING_APPROVAL:
            existing = await self.find_pending_for_order(related_order)
            if existing is not None:
                self.logger.info(
                    f"RO {related_order} already has pending notification {existing.id}, skipping enqueue"
                )
                return existing.id

        item_id = await self._insert_item(
            validated.model_dump(mode='json', exclude_none=True),
            NotificationType(notification_type), owner, related_order, status, scheduled_for,
        )
        self._publish(EventType.NOTIFICATIONS_CHANGED, {'notification_id': item_id})
        return item_id

    async def transition(self, notification_id: int, new_status: NotificationStatus) -> bool:
        """
        Ubah status item. Tidak memvalidasi urutan status; guard ada di
        ``approve`` / ``reject`` / ``deliver_approved``.
        """
        try:
            status = NotificationStatus(new_status)
            item = await self.fetch_by_id(notification_id)
            if item is None:
                return False
            item.status = status.value
            await self.db_session.commit()
        except Exception as e:
            await self.db_session.rollback()
            self.logger.error(f"Failed to transition notification {notification_id} to {new_status}: {str(e)}")
            return False

        self._publish(EventType.NOTIFICATIONS_CHANGED, {'notification_id': notification_id})
        return True

    async def fetch_by_id(self, notification_id: int) -> Optional[NotificationQueueItem]:
        result = await self.db_session.execute(
            select(NotificationQueueItem).filter(NotificationQueueItem.id == notification_id)
        )
        return result.scalars().first()

    async def find_pending_for_order(self, repair_order_id: int) -> Optional[NotificationQueueItem]:
        result = await self.db_session.execute(
            select(NotificationQueueItem)
            .filter(
                NotificationQueueItem.repair_order_id == repair_order_id,
                NotificationQueueItem.status == NotificationStatus.PENDING_APPROVAL.value,
            )
            .order_by(NotificationQueueItem.id.desc())
        )
        return result.scalars().first()

    async def list_pending(self) -> List[PendingNotificationSchema]:
        """Item pending, join ke RO yang masih ada, terbaru dulu."""
        result = await self.db_session.execute(
            select(NotificationQueueItem, RepairOrder.ro_number, RepairOrder.shop_name)
            .join(RepairOrder, RepairOrder.id == NotificationQueueItem.repair_order_id)
            .filter(NotificationQueueItem.status == NotificationStatus.PENDING_APPROVAL.value)
            .order_by(NotificationQueueItem.created_at.desc(), NotificationQueueItem.id.desc())
        )
        return [
            PendingNotificationSchema(
                **NotificationSchema.model_validate(item).model_dump(),
                ro_number=ro_number,
                shop_name=shop_name,
            )
            for item, ro_number, shop_name in result.all()
        ]

    async def get_email_thread_for_order(self, repair_order_id: int) -> Optional[Dict[str, Optional[str]]]:
        """Message id email terakhir yang terkirim untuk RO ini (untuk In-Reply-To)."""
        result = await self.db_session.execute(
            select(NotificationQueueItem)
            .filter(
                NotificationQueueItem.repair_order_id == repair_order_id,
                NotificationQueueItem.type == NotificationType.EMAIL_DRAFT.value,
                NotificationQueueItem.status == NotificationStatus.SENT.value,
                NotificationQueueItem.outlook_message_id.isnot(None),
            )
            .order_by(NotificationQueueItem.updated_at.desc(), NotificationQueueItem.id.desc())
        )
        item = result.scalars().first()
        if item is None:
            return None
        return {
            'message_id': item.outlook_message_id,
            'conversation_id': item.outlook_conversation_id,
        }

    async def record_delivery_ids(self, notification_id: int, message_id: str,
                                  conversation_id: str = None) -> bool:
        """Simpan id message/conversation hasil kirim, dipakai untuk threading reply berikutnya."""
        item = await self.fetch_by_id(notification_id)
        if item is None:
            return False
        item.outlook_message_id = message_id
        item.outlook_conversation_id = conversation_id
        await self.db_session.commit()
        return True

    # ------------------------------------------------------------------
    # Session actions
    # ------------------------------------------------------------------

    @action_result
    async def create_notification(self, data: NotificationCreateSchema, owner: int) -> Dict[str, int]:
        await self._get_or_404(RepairOrder, data.repair_order_id)
        item_id = await self.enqueue(data.payload, data.type, owner, data.repair_order_id,
                                     scheduled_for=data.scheduled_for)
        return {'id': item_id}

    @action_result
    async def get_pending(self) -> List[PendingNotificationSchema]:
        return await self.list_pending()

    @action_result
    async def approve(self, notification_id: int, user_id: int) -> TaskHandle:
        """Approve item pending lalu trigger background task pengiriman."""
        item = await self._get_pending_item(notification_id, 'approved')
        if self.dispatcher is None:
            raise ExternalServiceError('TASKS', "Task dispatcher is not configured")

        item.status = NotificationStatus.APPROVED.value
        await self.db_session.commit()
        self._publish(EventType.NOTIFICATIONS_CHANGED, {'notification_id': notification_id})

        try:
            handle = await asyncio.to_thread(
                self.dispatcher.trigger, SEND_APPROVED_EMAIL,
                {'notification_id': notification_id, 'user_id': user_id},
            )
        except ExternalServiceError:
            self.logger.error(
                f"Notification {notification_id} approved but delivery task could not be triggered"
            )
            raise

        self.logger.info(f"Notification {notification_id} approved by user {user_id}, run {handle.run_id}")
        return handle

    @action_result
    async def reject(self, notification_id: int) -> NotificationSchema:
        item = await self._get_pending_item(notification_id, 'rejected')
        item.status = NotificationStatus.REJECTED.value
        await self.db_session.commit()
        self._publish(EventType.NOTIFICATIONS_CHANGED, {'notification_id': notification_id})
        self.logger.info(f"Notification {notification_id} rejected by {self.actor}")
        return NotificationSchema.model_validate(item)

    @action_result
    async def deliver_approved(self, notification_id: int) -> DeliveryOutcome:
        """
        Kirim item yang sudah APPROVED. Dipanggil oleh background task.

        Item SENT / REJECTED / FAILED di-skip tanpa error, item yang masih
        pending ditolak. Kalau pengiriman gagal, item ditandai FAILED.
        """
        item = await self.fetch_by_id(notification_id)
        if item is None:
            raise NotFoundError('Notification', notification_id)

        if item.status in FINAL_STATUSES:
            self.logger.info(f"Notification {notification_id} already {item.status}, skipping delivery")
            return DeliveryOutcome(notification_id=notification_id, action='skipped',
                                   reason=f"already {item.status}")
        if item.status != NotificationStatus.APPROVED.value:
            raise ConflictError(f"Notification {notification_id} has not been approved", 'Notification')
        if self.email_sender is None:
            raise ExternalServiceError('EMAIL', "Email sender is not configured")

        order = await self._get_or_404(RepairOrder, item.repair_order_id)
        try:
            if item.type == NotificationType.EMAIL_DRAFT.value:
                message_id, conversation_id = await self._send_email_draft(item, order)
            else:
                message_id, conversation_id = await self._send_task_reminder(item, order)
        except ExternalServiceError as e:
            item.status = NotificationStatus.FAILED.value
            await self.db_session.commit()
            self._publish(EventType.NOTIFICATIONS_CHANGED, {'notification_id': notification_id})
            self.logger.error(f"Delivery of notification {notification_id} failed: {e.message}")
            raise

        item.status = NotificationStatus.SENT.value
        if item.type == NotificationType.EMAIL_DRAFT.value:
            # follow-up terkirim: reset jadwal update berikutnya
            today = date.today()
            order.last_date_updated = format_date_us(today)
            order.next_date_to_update = format_date_us(today + timedelta(days=FOLLOW_UP_INTERVAL_DAYS))
        await self.record_delivery_ids(item.id, message_id, conversation_id)
        self._publish(EventType.REPAIR_ORDERS_CHANGED, {'repair_order_id': order.id})
        self._publish(EventType.NOTIFICATIONS_CHANGED, {'notification_id': notification_id})

        return DeliveryOutcome(notification_id=notification_id, action='sent', message_id=message_id)

    @action_result
    async def queue_overdue_followups(self, days: int = 7) -> Dict[str, int]:
        """
        Safety net terjadwal: RO WAITING QUOTE yang status date-nya sudah
        ``days`` hari atau lebih dapat draft email follow-up.
        """
        owner = (await self.db_session.execute(select(User).order_by(User.id))).scalars().first()
        if owner is None:
            raise ValidationError("No users exist to own follow-up notifications")

        result = await self.db_session.execute(
            select(RepairOrder)
            .filter(status_group_condition(StatusGroup.WAITING_QUOTE))
            .order_by(RepairOrder.ro_number)
        )
        checked = queued = 0
        for order in result.scalars().all():
            age = days_since(order.current_status_date)
            if age is None or age < days:
                continue
            checked += 1

            existing = await self.find_pending_for_order(order.id)
            if existing is not None:
                continue

            payload = EmailDraftPayload(
                to_address=await self._shop_email(order.shop_name),
                subject=Template(self.email_templates['FOLLOW_UP']['subject']).render(ro_number=order.ro_number),
                body=Template(self.email_templates['FOLLOW_UP']['body']).render(
                    ro_number=order.ro_number, part=order.part or 'N/A', days=age,
                ),
            )
            await self.enqueue(payload, NotificationType.EMAIL_DRAFT, owner.id, order.id)
            queued += 1

        self.logger.info(f"Overdue follow-up check: {checked} overdue, {queued} queued")
        return {'overdue': checked, 'queued': queued}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @transactional
    async def _insert_item(self, payload: Dict[str, Any], notification_type: NotificationType,
                           owner: int, related_order: int, status: NotificationStatus,
                           scheduled_for) -> int:
        item = NotificationQueueItem(
            user_id=owner,
            repair_order_id=related_order,
            type=notification_type.value,
            status=status.value,
            payload=payload,
            scheduled_for=scheduled_for,
        )
        self.db_session.add(item)
        await self.db_session.flush()
        return item.id

    async def _get_pending_item(self, notification_id: int, verb: str) -> NotificationQueueItem:
        item = await self.fetch_by_id(notification_id)
        if item is None:
            raise NotFoundError('Notification', notification_id)
        if item.status != NotificationStatus.PENDING_APPROVAL.value:
            raise ConflictError(
                f"Notification {notification_id} is {item.status}, only PENDING_APPROVAL can be {verb}",
                'Notification',
            )
        return item

    async def _send_email_draft(self, item: NotificationQueueItem, order: RepairOrder):
        payload = EmailDraftPayload.model_validate(item.payload)
        thread = await self.get_email_thread_for_order(order.id)
        in_reply_to = thread['message_id'] if thread else None

        message_id = await asyncio.to_thread(
            self.email_sender.send,
            str(payload.to_address), payload.subject, payload.body,
            [str(address) for address in payload.cc] if payload.cc else None,
            in_reply_to,
        )
        conversation_id = (thread['conversation_id'] if thread else None) or in_reply_to or message_id
        return message_id, conversation_id

    async def _send_task_reminder(self, item: NotificationQueueItem, order: RepairOrder):
        payload = TaskReminderPayload.model_validate(item.payload)
        owner = await self._get_or_404(User, item.user_id)

        due = parse_date(payload.due_date)
        context = {
            'title': payload.title,
            'due_date': format_date_us(due) if due else payload.due_date,
            'notes': payload.notes,
            'ro_number': order.ro_number,
            'ro_url': f"{self.email_config.get('app_url', '')}/repair-orders/{order.id}",
        }
        template = self.email_templates['TASK_REMINDER']
        message_id = await asyncio.to_thread(
            self.email_sender.send,
            owner.email,
            Template(template['subject']).render(**context),
            Template(template['body']).render(**context),
        )
        return message_id, None

    async def _shop_email(self, shop_name: Optional[str]) -> str:
        fallback = self.email_config.get('followup_fallback_email') or self.email_config.get('smtp_from')
        if not shop_name:
            return fallback

        name = shop_name.strip().upper()
        for condition in (
            Shop.business_name.ilike(name),
            Shop.business_name.ilike(f"%{name}%"),
        ):
            result = await self.db_session.execute(
                select(Shop.email).filter(condition, Shop.email.isnot(None)).order_by(Shop.id)
            )
            email = result.scalars().first()
            if email:
                return email
        return fallback

    def _load_email_templates(self) -> Dict[str, Dict[str, str]]:
        """Template email follow-up dan reminder"""
        return {
            'FOLLOW_UP': {
                'subject': 'Follow-up: RO# G{{ ro_number }}',
                'body': (
                    "Hi Team,\n\n"
                    "Just checking in on RO# G{{ ro_number }} for part {{ part }}.\n\n"
                    "We'd love an update on the quote when you have a moment.\n\n"
                    "Thanks!\nGenThrust"
                ),
            },
            'TASK_REMINDER': {
                'subject': 'Reminder: {{ title }}',
                'body': '''
                <h2>{{ title }}</h2>
                <p><strong>RO#:</strong> G{{ ro_number }}</p>
                <p><strong>Due:</strong> {{ due_date }}</p>
                {% if notes %}<p>{{ notes }}</p>{% endif %}
                <p><a href="{{ ro_url }}">Open repair order</a></p>
                '''
            },
        }
