"""
Dashboard Stats
===============

Perhitungan angka dashboard dari list repair order aktif (satu pass),
plus helper SQL yang memakai aturan klasifikasi yang sama dengan
``statuses``. Dipakai bersama oleh dashboard utama dan forensics supaya
hasil keduanya tidak pernah beda.
"""

import logging
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import and_, func, not_, or_

from ...dates import parse_date
from ...models import RepairOrder
from ...schemas import DashboardStats
from ...statuses import ARCHIVED_STATUSES, STATUS_WHITESPACE, MatchRule, StatusGroup, classify_status, counts_toward_value

logger = logging.getLogger(__name__)

MAX_UNPARSEABLE_SAMPLES = 5


def normalized_status_column(column=RepairOrder.current_status):
    return func.upper(func.trim(column, STATUS_WHITESPACE))


def active_order_filter():
    """Active set: status tidak termasuk ARCHIVED_STATUSES (status NULL ikut terbuang)."""
    return and_(
        RepairOrder.current_status.isnot(None),
        not_(normalized_status_column().in_(ARCHIVED_STATUSES)),
    )


def status_group_condition(group: StatusGroup, column=RepairOrder.current_status):
    """Versi SQL dari ``StatusGroup.matches``."""
    normalized = normalized_status_column(column)
    if group.rule is MatchRule.PREFIX:
        return or_(*[normalized.like(f"{variant}%") for variant in group.variants])
    return normalized.in_(group.variants)


def compute_stats(active_orders: Iterable, today: Optional[date] = None) -> DashboardStats:
    """
    Hitung stats dari repair order aktif.

    Overdue = next_date_to_update valid dan sebelum hari ini. Tanggal yang
    tidak kosong tapi tidak bisa diparse dihitung di ``unparseable_dates``,
    bukan overdue.
    """
    today = today or date.today()
    stats = DashboardStats()

    for order in active_orders:
        stats.total_active += 1
        status = order.current_status

        membership = classify_status(status)
        stats.waiting_quote += membership.waiting_quote
        stats.in_work += membership.in_work
        stats.shipped += membership.shipped
        stats.approved += membership.approved

        if counts_toward_value(status):
            stats.value_in_work += order.estimated_cost or 0.0

        count_overdue(stats, order, today)

    if stats.unparseable_dates:
        logger.warning(
            f"{stats.unparseable_dates} active repair order(s) have unparseable next-update dates: "
            f"{stats.unparseable_samples}"
        )
    return stats


def count_overdue(stats: DashboardStats, order, today: date) -> None:
    raw = order.next_date_to_update
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return

    parsed = parse_date(raw)
    if parsed is None:
        stats.unparseable_dates += 1
        if len(stats.unparseable_samples) < MAX_UNPARSEABLE_SAMPLES:
            stats.unparseable_samples.append(f"RO#{order.ro_number}: {raw!r}")
        return

    if parsed < today:
        stats.overdue += 1
