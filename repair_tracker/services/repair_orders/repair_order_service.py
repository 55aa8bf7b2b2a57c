"""
Repair Order Service
====================

Service untuk CRUD repair order, status, notes, dan relasi antar RO.

Setiap perubahan field dicatat di ``ro_activity_log`` (satu row per field),
perubahan status juga masuk ``ro_status_history``.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import String, and_, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..base import BaseService, transactional, action_result
from ..exceptions import ConflictError, ValidationError
from ..integration.task_dispatcher import HANDLE_RO_STATUS_CHANGE
from ..reporting.stats import active_order_filter, normalized_status_column
from ...dates import is_overdue, today_iso
from ...events import EventBus, EventType
from ...models import ActivityLog, RepairOrder, RepairOrderRelation, StatusHistory
from ...schemas import (
    ActivityLogSchema, NoteCreateSchema, RelatedOrderSchema, RelationCreateSchema,
    RepairOrderCreateSchema, RepairOrderSchema, RepairOrderUpdateSchema,
    StatusHistorySchema, StatusUpdateSchema,
)
from ...statuses import is_tracked_status, normalize_status

INITIAL_STATUS = "WAITING QUOTE"
LINK_SEARCH_MIN_LENGTH = 2
LINK_SEARCH_LIMIT = 10


class RepairOrderService(BaseService):
    """Service untuk Repair Order management"""

    search_fields = ['shop_name', 'part', 'serial', 'part_description']

    def __init__(self, db_session: AsyncSession, current_user: str = None,
                 event_bus: Optional[EventBus] = None, dispatcher=None,
                 user_name: str = None):
        super().__init__(db_session, current_user, event_bus)
        self.dispatcher = dispatcher
        self.user_name = user_name

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @action_result
    async def list_orders(self, page: int = 1, per_page: int = 20, search: str = None,
                          overdue: bool = False, status: str = None,
                          shop: str = None) -> Dict[str, Any]:
        """List RO aktif (status archived tidak ikut), RO terbaru dulu."""
        query = select(RepairOrder).filter(active_order_filter())

        if search:
            search = search.strip()
            query = self._apply_search(
                query, RepairOrder, search, self.search_fields,
                extra_conditions=[cast(RepairOrder.ro_number, String).like(f'%{search.lstrip("Gg")}%')],
            )
        if status:
            query = query.filter(normalized_status_column().like(f"{normalize_status(status)}%"))
        if shop:
            query = query.filter(func.lower(RepairOrder.shop_name) == shop.strip().lower())

        query = query.order_by(RepairOrder.ro_number.desc())

        if not overdue:
            result = await self._paginate_query(query, page, per_page)
            result['items'] = [RepairOrderSchema.model_validate(order) for order in result['items']]
            return result

        # Tanggal berupa text campur format, jadi filter overdue di memory
        rows = (await self.db_session.execute(query)).scalars().all()
        matching = [order for order in rows if is_overdue(order.next_date_to_update)]
        per_page = min(per_page, 100)
        start = (page - 1) * per_page
        return {
            'items': [RepairOrderSchema.model_validate(order) for order in matching[start:start + per_page]],
            'pagination': self._pagination_info(len(matching), page, per_page),
        }

    @action_result
    async def get_order(self, order_id: int) -> RepairOrderSchema:
        order = await self._get_or_404(RepairOrder, order_id)
        return RepairOrderSchema.model_validate(order)

    @action_result
    async def get_activity_log(self, order_id: int) -> List[ActivityLogSchema]:
        await self._get_or_404(RepairOrder, order_id)
        result = await self.db_session.execute(
            select(ActivityLog)
            .filter(ActivityLog.repair_order_id == order_id)
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        )
        return [ActivityLogSchema.model_validate(entry) for entry in result.scalars().all()]

    @action_result
    async def get_status_history(self, order_id: int) -> List[StatusHistorySchema]:
        await self._get_or_404(RepairOrder, order_id)
        result = await self.db_session.execute(
            select(StatusHistory)
            .filter(StatusHistory.repair_order_id == order_id)
            .order_by(StatusHistory.changed_at.desc(), StatusHistory.id.desc())
        )
        return [StatusHistorySchema.model_validate(entry) for entry in result.scalars().all()]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    @action_result
    async def create_order(self, data: RepairOrderCreateSchema) -> RepairOrderSchema:
        """RO baru dengan nomor max + 1 dan status WAITING QUOTE."""
        order = await self._insert_order(data)

        await self._log_activity(order.id, 'CREATE', new_value=f"Created RO #{order.ro_number}")
        self.db_session.add(StatusHistory(
            repair_order_id=order.id,
            status=INITIAL_STATUS,
            changed_by=self.actor,
        ))
        await self.db_session.commit()

        self.logger.info(f"Created RO #{order.ro_number} for {order.shop_name}")
        self._publish(EventType.REPAIR_ORDERS_CHANGED, {'repair_order_id': order.id})
        return RepairOrderSchema.model_validate(order)

    @action_result
    async def update_order(self, order_id: int, data: RepairOrderUpdateSchema) -> RepairOrderSchema:
        """Update field yang dikirim; satu activity row per field yang berubah."""
        order = await self._get_or_404(RepairOrder, order_id)
        changes = data.model_dump(exclude_unset=True)

        changed = []
        previous_status = order.current_status
        for field, new_value in changes.items():
            old_value = getattr(order, field)
            if self._as_text(old_value) == self._as_text(new_value):
                continue
            setattr(order, field, new_value)
            changed.append((field, old_value, new_value))

        if not changed:
            return RepairOrderSchema.model_validate(order)

        today = today_iso()
        order.last_date_updated = today
        for field, old_value, new_value in changed:
            await self._log_activity(order.id, 'UPDATE', field=field, old_value=old_value, new_value=new_value)

        if any(field == 'current_status' for field, _, _ in changed):
            order.current_status_date = today
            self._add_status_history(order, previous_status)

        await self.db_session.commit()
        self._publish(EventType.REPAIR_ORDERS_CHANGED, {'repair_order_id': order.id})
        return RepairOrderSchema.model_validate(order)

    @action_result
    async def update_status(self, order_id: int, data: StatusUpdateSchema) -> Dict[str, Any]:
        """
        Ganti status. Status sama persis = no-op. Status tracked memicu
        background task lifecycle (follow-up flow).
        """
        order = await self._get_or_404(RepairOrder, order_id)
        old_status = order.current_status or ''
        if data.status == old_status:
            return {'repair_order': RepairOrderSchema.model_validate(order), 'run_id': None,
                    'public_access_token': None}

        today = today_iso()
        order.current_status = data.status
        order.current_status_date = today
        order.last_date_updated = today
        await self._log_activity(order.id, 'UPDATE', field='current_status',
                                 old_value=old_status or None, new_value=data.status)
        self._add_status_history(order, old_status or None, notes=data.notes)
        await self.db_session.commit()
        self._publish(EventType.REPAIR_ORDERS_CHANGED, {'repair_order_id': order.id})

        run_id = None
        public_access_token = None
        new_normalized = normalize_status(data.status)
        if is_tracked_status(new_normalized) and new_normalized != normalize_status(old_status):
            handle = await self._dispatch_lifecycle(order, new_normalized, normalize_status(old_status))
            if handle is not None:
                run_id, public_access_token = handle.run_id, handle.public_access_token

        return {
            'repair_order': RepairOrderSchema.model_validate(order),
            'run_id': run_id,
            'public_access_token': public_access_token,
        }

    @action_result
    async def append_note(self, order_id: int, data: NoteCreateSchema) -> RepairOrderSchema:
        """Tambah baris ``[timestamp] user: note`` di akhir notes."""
        order = await self._get_or_404(RepairOrder, order_id)
        current_notes = order.notes or ''

        timestamp = datetime.now(timezone.utc).isoformat(timespec='seconds')
        entry = f"[{timestamp}] {self.user_name or self.actor}: {data.note}"
        order.notes = f"{current_notes}\n{entry}" if current_notes.strip() else entry

        await self._log_activity(order.id, 'NOTE_ADDED', field='notes',
                                 old_value=current_notes or None, new_value=data.note)
        await self.db_session.commit()
        self._publish(EventType.REPAIR_ORDERS_CHANGED, {'repair_order_id': order.id})
        return RepairOrderSchema.model_validate(order)

    # ------------------------------------------------------------------
    # Relations
    # ------------------------------------------------------------------

    @action_result
    async def link_orders(self, source_id: int, data: RelationCreateSchema) -> Dict[str, int]:
        if source_id == data.target_ro_id:
            raise ValidationError("A repair order cannot be linked to itself", field='target_ro_id')

        source = await self._get_or_404(RepairOrder, source_id)
        target = await self._get_or_404(RepairOrder, data.target_ro_id)

        existing = await self.db_session.execute(
            select(RepairOrderRelation).filter(or_(
                and_(RepairOrderRelation.source_ro_id == source.id,
                     RepairOrderRelation.target_ro_id == target.id),
                and_(RepairOrderRelation.source_ro_id == target.id,
                     RepairOrderRelation.target_ro_id == source.id),
            ))
        )
        if existing.scalars().first() is not None:
            raise ConflictError("Relation already exists", 'RepairOrderRelation')

        relation = await self._insert_relation(source.id, target.id, data.relation_type)

        await self._log_activity(source.id, 'RELATION_ADDED',
                                 new_value=f"Linked to RO #{target.ro_number} ({data.relation_type})")
        await self._log_activity(target.id, 'RELATION_ADDED',
                                 new_value=f"Linked from RO #{source.ro_number} ({data.relation_type})")
        await self.db_session.commit()
        return {'id': relation.id}

    @action_result
    async def unlink_orders(self, relation_id: int) -> Dict[str, int]:
        relation = await self._get_or_404(RepairOrderRelation, relation_id)
        source_id, target_id = relation.source_ro_id, relation.target_ro_id

        await self.db_session.delete(relation)
        await self._log_activity(source_id, 'RELATION_REMOVED', old_value=f"Unlinked from RO {target_id}")
        await self._log_activity(target_id, 'RELATION_REMOVED', old_value=f"Unlinked from RO {source_id}")
        await self.db_session.commit()
        return {'id': relation_id}

    @action_result
    async def get_related_orders(self, order_id: int) -> List[RelatedOrderSchema]:
        """Relasi dua arah: RO ini sebagai source (OUTGOING) atau target (INCOMING)."""
        await self._get_or_404(RepairOrder, order_id)
        related = []
        for direction, own_column, other_column in (
            ('OUTGOING', RepairOrderRelation.source_ro_id, RepairOrderRelation.target_ro_id),
            ('INCOMING', RepairOrderRelation.target_ro_id, RepairOrderRelation.source_ro_id),
        ):
            result = await self.db_session.execute(
                select(RepairOrderRelation, RepairOrder)
                .join(RepairOrder, RepairOrder.id == other_column)
                .filter(own_column == order_id)
                .order_by(RepairOrderRelation.id)
            )
            for relation, other in result.all():
                related.append(RelatedOrderSchema(
                    relation_id=relation.id,
                    repair_order_id=other.id,
                    ro_number=other.ro_number,
                    shop_name=other.shop_name,
                    part=other.part,
                    relation_type=relation.relation_type,
                    direction=direction,
                ))
        return related

    @action_result
    async def search_for_linking(self, query: str, exclude_id: int) -> List[RepairOrderSchema]:
        query = (query or '').strip()
        if len(query) < LINK_SEARCH_MIN_LENGTH:
            return []

        pattern = f'%{query}%'
        result = await self.db_session.execute(
            select(RepairOrder)
            .filter(
                RepairOrder.id != exclude_id,
                or_(
                    cast(RepairOrder.ro_number, String).like(pattern),
                    RepairOrder.shop_name.ilike(pattern),
                    RepairOrder.part.ilike(pattern),
                ),
            )
            .order_by(RepairOrder.ro_number.desc())
            .limit(LINK_SEARCH_LIMIT)
        )
        return [RepairOrderSchema.model_validate(order) for order in result.scalars().all()]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @transactional
    async def _insert_order(self, data: RepairOrderCreateSchema) -> RepairOrder:
        max_ro = (await self.db_session.execute(select(func.max(RepairOrder.ro_number)))).scalar()
        today = today_iso()
        order = RepairOrder(
            ro_number=(max_ro or 0) + 1,
            date_made=today,
            current_status=INITIAL_STATUS,
            current_status_date=today,
            last_date_updated=today,
            next_date_to_update=today,
            erp_sync_status='LOCAL_ONLY',
            **data.model_dump(exclude_none=True),
        )
        self.db_session.add(order)
        await self.db_session.flush()
        return order

    @transactional
    async def _insert_relation(self, source_id: int, target_id: int, relation_type: str) -> RepairOrderRelation:
        relation = RepairOrderRelation(
            source_ro_id=source_id,
            target_ro_id=target_id,
            relation_type=relation_type,
            created_by=self.actor,
        )
        self.db_session.add(relation)
        await self.db_session.flush()
        return relation

    def _add_status_history(self, order: RepairOrder, previous_status: Optional[str], notes: str = None):
        self.db_session.add(StatusHistory(
            repair_order_id=order.id,
            status=order.current_status,
            previous_status=previous_status,
            changed_by=self.actor,
            notes=notes,
        ))

    async def _dispatch_lifecycle(self, order: RepairOrder, new_status: str, old_status: str):
        if self.dispatcher is None:
            self.logger.warning(f"No task dispatcher configured, lifecycle flow for RO #{order.ro_number} skipped")
            return None
        try:
            return await asyncio.to_thread(self.dispatcher.trigger, HANDLE_RO_STATUS_CHANGE, {
                'repairOrderId': order.id,
                'newStatus': new_status,
                'oldStatus': old_status,
                'userId': self.actor,
            })
        except Exception as e:
            # status sudah tersimpan, dispatch gagal tidak membatalkan update
            self.logger.error(f"Failed to trigger lifecycle flow for RO #{order.ro_number}: {str(e)}")
            return None

    @staticmethod
    def _as_text(value: Any) -> str:
        return '' if value is None else str(value)
