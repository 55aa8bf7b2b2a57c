"""
Dashboard Forensics
===================

Endpoint diagnostik: hitung ulang stats dari raw rows (bukan SQL agregat)
supaya angka dashboard bisa dicocokkan. Juga kasih sample tanggal yang
gagal diparse dan distribusi status.
"""

from datetime import date, datetime, timezone
from typing import List

from sqlalchemy import func, select

from ..base import BaseService, action_result
from ...dates import parse_date
from ...models import RepairOrder
from ...schemas.dashboard import (
    DateParseErrors, DateParseErrorSample, ForensicsReport, StatusDistributionRow,
)
from .stats import MAX_UNPARSEABLE_SAMPLES, active_order_filter, compute_stats, normalized_status_column


class ForensicsService(BaseService):
    """Service untuk diagnostik dashboard"""

    @action_result
    async def run(self, today: date = None) -> ForensicsReport:
        total_in_db = (await self.db_session.execute(select(func.count(RepairOrder.id)))).scalar() or 0

        result = await self.db_session.execute(
            select(RepairOrder).filter(active_order_filter()).order_by(RepairOrder.id)
        )
        active_orders = result.scalars().all()

        stats = compute_stats(active_orders, today=today)
        self.logger.info(f"Forensics: {total_in_db} rows, {stats.total_active} active")

        return ForensicsReport(
            timestamp=datetime.now(timezone.utc),
            total_in_db=total_in_db,
            total_active=stats.total_active,
            stats=stats,
            date_parse_errors=self._date_parse_errors(active_orders),
            status_distribution=await self._status_distribution(),
        )

    @staticmethod
    def _date_parse_errors(orders) -> DateParseErrors:
        errors = DateParseErrors()
        for order in orders:
            raw = order.next_date_to_update
            if not raw or not raw.strip() or parse_date(raw) is not None:
                continue
            errors.count += 1
            if len(errors.samples) < MAX_UNPARSEABLE_SAMPLES:
                errors.samples.append(DateParseErrorSample(
                    repair_order_id=order.id, ro_number=order.ro_number, value=raw,
                ))
        return errors

    async def _status_distribution(self) -> List[StatusDistributionRow]:
        normalized = normalized_status_column()
        count = func.count(RepairOrder.id)
        result = await self.db_session.execute(
            select(normalized, count, func.sum(func.coalesce(RepairOrder.estimated_cost, 0.0)))
            .group_by(normalized)
            .order_by(count.desc(), normalized)
        )
        return [
            StatusDistributionRow(status=status, count=rows, total_estimated_cost=float(cost or 0.0))
            for status, rows, cost in result.all()
        ]
