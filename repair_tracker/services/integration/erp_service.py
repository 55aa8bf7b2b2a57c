"""
ERP Sync Service
================

Rekonsiliasi repair order ERP ke table lokal.

- ``sync_one``: fetch details, CREATE atau UPDATE row lokal, catat activity.
- ``sync_many``: list external id, berurutan, gagal per item dihitung.
- ``sync_all``: paging list ERP sampai halaman kosong / pendek.

Tidak ada rollback antar item dan tidak ada retry otomatis. Menjalankan
ulang menghasilkan state akhir yang sama (idempotent per field).
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..base import BaseService, transactional, action_result, SYSTEM_USER
from ..exceptions import ExternalServiceError, ValidationError
from ...dates import today_iso
from ...events import EventBus, EventType
from ...models import ERPSyncLog, RepairOrder, utcnow
from ...schemas import ERPOrderDetails, ERPOrderSummary, SyncAction, SyncOutcome, SyncSummary, TaskHandle
from .erp_mapping import (
    MAPPED_FIELDS, SYNC_METADATA_FIELDS, condition_note, extract_date, map_details_to_local, parse_ro_number,
)
from .task_dispatcher import ERP_MANUAL_SYNC


class ERPSyncService(BaseService):
    """Service untuk sinkronisasi repair order dari ERP"""

    def __init__(self, db_session: AsyncSession, erp_client, current_user: str = None,
                 event_bus: Optional[EventBus] = None, page_size: int = 50,
                 request_delay: float = 0.5, dispatcher=None):
        super().__init__(db_session, current_user, event_bus)
        self.erp_client = erp_client
        self.dispatcher = dispatcher
        self.page_size = page_size
        self.request_delay = request_delay

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    @action_result
    async def sync_one(self, external_id: int, revalidate: bool = True) -> SyncOutcome:
        """Sync satu PO dari ERP. ``revalidate`` = invalidate cached views setelah write."""
        return await self._sync_one(external_id, revalidate)

    @action_result
    async def sync_many(self, external_ids: List[int]) -> SyncSummary:
        """Sync beberapa PO berurutan. Item yang gagal dicatat, loop jalan terus."""
        summary = SyncSummary()
        self._publish(EventType.SYNC_STARTED, {'external_ids': list(external_ids)})
        try:
            for index, external_id in enumerate(external_ids):
                is_last = index == len(external_ids) - 1
                await self._sync_item(external_id, summary, revalidate=is_last)
                if not is_last and self.request_delay:
                    await asyncio.sleep(self.request_delay)
        finally:
            self._publish(EventType.SYNC_FINISHED, summary.model_dump())

        await self._log_sync_operation('REPAIR_ORDER_SYNC_MANY', self._run_status(summary), summary)
        return summary

    @action_result
    async def sync_all(self, page_size: int = None, max_pages: int = None) -> SyncSummary:
        """
        Paging semua repair order ERP dan sync satu per satu.

        Halaman kosong atau lebih pendek dari ``page_size`` = akhir data.
        Fetch halaman yang gagal menghentikan loop (item yang sudah diproses
        tetap tersimpan).
        """
        page_size = page_size or self.page_size
        summary = SyncSummary()
        page = 1
        list_error = None

        self.logger.info(f"Starting ERP bulk sync (page_size={page_size}, max_pages={max_pages})")
        self._publish(EventType.SYNC_STARTED, {'page_size': page_size})
        try:
            while max_pages is None or page <= max_pages:
                try:
                    items = await asyncio.to_thread(self.erp_client.fetch_list, page_size, page)
                except Exception as e:
                    list_error = e
                    summary.aborted = True
                    summary.errors.append(f"Page {page}: {str(e)}")
                    self.logger.error(f"Failed to fetch ERP page {page}, aborting sync: {str(e)}")
                    break

                summary.pages_fetched += 1
                self.logger.info(f"ERP page {page}: {len(items)} item(s)")

                for item in items:
                    await self._sync_item(item.external_id, summary, revalidate=False)

                if len(items) < page_size:
                    break
                page += 1
                if self.request_delay:
                    await asyncio.sleep(self.request_delay)
        finally:
            if summary.succeeded:
                self._publish(EventType.REPAIR_ORDERS_CHANGED, {'source': 'erp_sync'})
            self._publish(EventType.SYNC_FINISHED, summary.model_dump())

        self.logger.info(
            f"ERP bulk sync finished: processed={summary.processed} created={summary.created} "
            f"updated={summary.updated} failed={summary.failed} pages={summary.pages_fetched}"
        )
        await self._log_sync_operation('REPAIR_ORDER_SYNC_ALL', self._run_status(summary), summary)

        if list_error is not None and summary.processed == 0:
            raise list_error
        return summary

    @action_result
    async def fetch_external_list(self, page_size: int = 50, page: int = 1) -> List[ERPOrderSummary]:
        return await asyncio.to_thread(self.erp_client.fetch_list, page_size, page)

    @action_result
    async def trigger_background_sync(self, user_id: int) -> TaskHandle:
        """Jalankan bulk sync di task runner, return handle untuk subscribe progress."""
        if self.dispatcher is None:
            raise ExternalServiceError('TASKS', "Task dispatcher is not configured")
        handle = await asyncio.to_thread(self.dispatcher.trigger, ERP_MANUAL_SYNC, {'userId': user_id})
        self.logger.info(f"Background ERP sync triggered by user {user_id}: run {handle.run_id}")
        return handle

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _sync_item(self, external_id: int, summary: SyncSummary, revalidate: bool) -> None:
        try:
            outcome = await self._sync_one(external_id, revalidate)
            summary.record(outcome)
            self.logger.info(f"Synced PO {external_id} -> RO {outcome.ro_number} ({outcome.action.value})")
        except Exception as e:
            summary.record_failure(external_id, str(e))
            self.logger.warning(f"Failed to sync PO {external_id}: {str(e)}")

    async def _sync_one(self, external_id: int, revalidate: bool) -> SyncOutcome:
        details: ERPOrderDetails = await asyncio.to_thread(self.erp_client.fetch_details, external_id)

        ro_number = parse_ro_number(details.body.po_no)
        if ro_number is None:
            raise ValidationError(f"Could not parse RO number from {details.body.po_no}", field='po_no')

        order, action = await self._upsert_order(external_id, ro_number, details)
        order_id = order.id

        # Write terpisah dari upsert; kalau gagal, sync tetap dianggap berhasil
        try:
            await self._log_activity(
                order_id, 'ERP_SYNC',
                new_value=f"Synced with ERP PO #{external_id} ({action.value})",
                user_id=SYSTEM_USER,
            )
            await self.db_session.commit()
        except Exception as e:
            await self.db_session.rollback()
            self.logger.error(f"Failed to log ERP sync activity for RO {ro_number}: {str(e)}")

        if revalidate:
            self._publish(EventType.REPAIR_ORDERS_CHANGED, {'source': 'erp_sync', 'repair_order_id': order_id})

        return SyncOutcome(action=action, local_id=order_id, ro_number=ro_number, external_id=external_id)

    @transactional
    async def _upsert_order(self, external_id: int, ro_number: int,
                            details: ERPOrderDetails) -> Tuple[RepairOrder, SyncAction]:
        mapped = map_details_to_local(details)
        note = condition_note(details)

        order = await self._find_local_order(str(external_id), ro_number)
        if order is not None:
            for key in MAPPED_FIELDS + SYNC_METADATA_FIELDS:
                setattr(order, key, mapped[key])
            # notes milik user; baris kondisi cuma ditambahkan kalau belum ada
            if note and note not in (order.notes or ''):
                order.notes = f"{order.notes}\n{note}" if order.notes else note
            await self.db_session.flush()
            return order, SyncAction.UPDATE

        today = today_iso()
        notes = f"Imported from ERP PO#{external_id}"
        if note:
            notes = f"{notes}\n{note}"
        order = RepairOrder(
            ro_number=ro_number,
            date_made=extract_date(details.body.created_time) or today,
            next_date_to_update=today,
            notes=notes,
            **mapped,
        )
        if not order.current_status_date:
            order.current_status_date = today
        if not order.last_date_updated:
            order.last_date_updated = today
        self.db_session.add(order)
        await self.db_session.flush()
        return order, SyncAction.CREATE

    async def _find_local_order(self, erp_po_id: str, ro_number: int) -> Optional[RepairOrder]:
        """Cari by erp_po_id; fallback ke RO number untuk row hasil import spreadsheet."""
        result = await self.db_session.execute(
            select(RepairOrder).filter(RepairOrder.erp_po_id == erp_po_id)
        )
        order = result.scalars().first()
        if order is not None:
            return order

        result = await self.db_session.execute(
            select(RepairOrder).filter(RepairOrder.ro_number == ro_number)
        )
        return result.scalars().first()

    @staticmethod
    def _run_status(summary: SyncSummary) -> str:
        if summary.aborted and summary.processed == 0:
            return 'ERROR'
        if summary.failed or summary.aborted:
            return 'PARTIAL'
        return 'SUCCESS'

    async def _log_sync_operation(self, operation_type: str, status: str, summary: SyncSummary):
        """Log satu run sync ke erp_sync_logs"""
        details: Dict[str, Any] = summary.model_dump()
        sync_log = ERPSyncLog(
            operation_type=operation_type,
            status=status,
            details=details,
            executed_by=self.actor,
            executed_at=utcnow(),
        )
        try:
            self.db_session.add(sync_log)
            await self.db_session.commit()
        except Exception as e:
            await self.db_session.rollback()
            self.logger.error(f"Failed to write ERP sync log: {str(e)}")
