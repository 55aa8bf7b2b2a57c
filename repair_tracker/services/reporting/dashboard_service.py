"""
Dashboard Service
=================

Stats dashboard utama. Bucket count dan value-in-work diagregasi di SQL,
overdue dihitung di Python karena kolom tanggal berupa text campur format.

Hasil di-cache di state session (``SessionState.stats``) dan dibuang
otomatis waktu ada event ``REPAIR_ORDERS_CHANGED``.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy import case, func, not_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..base import BaseService, action_result
from ...events import EventBus, SessionState
from ...models import RepairOrder
from ...schemas import DashboardStats
from ...statuses import StatusGroup, VALUE_EXCLUDED_STATUSES
from .stats import active_order_filter, count_overdue, normalized_status_column, status_group_condition


def _count_when(condition):
    return func.sum(case((condition, 1), else_=0))


class DashboardService(BaseService):
    """Service untuk dashboard stats"""

    def __init__(self, db_session: AsyncSession, current_user: str = None,
                 event_bus: Optional[EventBus] = None, session_state: Optional[SessionState] = None):
        super().__init__(db_session, current_user, event_bus)
        self.session_state = session_state

    @action_result
    async def get_stats(self, use_cache: bool = True, today: date = None) -> DashboardStats:
        if use_cache and self.session_state is not None:
            cached = self.session_state.stats.get()
            if cached is not None:
                return cached

        stats = await self._aggregate_buckets()
        await self._aggregate_overdue(stats, today or date.today())
        stats.net30 = await self._count_net30()

        if stats.unparseable_dates:
            self.logger.warning(
                f"{stats.unparseable_dates} active repair order(s) have unparseable next-update dates: "
                f"{stats.unparseable_samples}"
            )

        if self.session_state is not None:
            self.session_state.stats.set(stats)
        return stats

    @action_result
    async def get_unique_shops(self) -> List[str]:
        result = await self.db_session.execute(
            select(RepairOrder.shop_name)
            .filter(RepairOrder.shop_name.isnot(None), func.trim(RepairOrder.shop_name) != '')
            .distinct()
            .order_by(RepairOrder.shop_name)
        )
        return list(result.scalars().all())

    @action_result
    async def get_unique_statuses(self) -> List[str]:
        """Status unik (dinormalisasi) dari repair order aktif."""
        normalized = normalized_status_column()
        result = await self.db_session.execute(
            select(normalized)
            .filter(active_order_filter(), normalized != '')
            .distinct()
            .order_by(normalized)
        )
        return list(result.scalars().all())

    async def _aggregate_buckets(self) -> DashboardStats:
        normalized = normalized_status_column()
        query = select(
            func.count(RepairOrder.id),
            _count_when(status_group_condition(StatusGroup.WAITING_QUOTE)),
            _count_when(status_group_condition(StatusGroup.IN_WORK)),
            _count_when(status_group_condition(StatusGroup.SHIPPED)),
            _count_when(status_group_condition(StatusGroup.APPROVED)),
            func.sum(case(
                (not_(normalized.in_(VALUE_EXCLUDED_STATUSES)), func.coalesce(RepairOrder.estimated_cost, 0.0)),
                else_=0.0,
            )),
        ).filter(active_order_filter())

        total, waiting_quote, in_work, shipped, approved, value = (await self.db_session.execute(query)).one()
        return DashboardStats(
            total_active=total or 0,
            waiting_quote=waiting_quote or 0,
            in_work=in_work or 0,
            shipped=shipped or 0,
            approved=approved or 0,
            value_in_work=float(value or 0.0),
        )

    async def _aggregate_overdue(self, stats: DashboardStats, today: date) -> None:
        result = await self.db_session.execute(
            select(RepairOrder.ro_number, RepairOrder.next_date_to_update)
            .filter(active_order_filter())
            .order_by(RepairOrder.id)
        )
        for row in result.all():
            count_overdue(stats, row, today)

    async def _count_net30(self) -> int:
        result = await self.db_session.execute(
            select(func.count(RepairOrder.id)).filter(
                normalized_status_column() == 'COMPLETE',
                RepairOrder.terms.ilike('%net%'),
            )
        )
        return result.scalar() or 0
