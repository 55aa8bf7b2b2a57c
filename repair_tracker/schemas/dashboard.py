from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class DashboardStats(BaseModel):
    overdue: int = 0
    waiting_quote: int = 0
    in_work: int = 0
    shipped: int = 0
    approved: int = 0
    value_in_work: float = 0.0
    total_active: int = 0
    net30: Optional[int] = None

    # Diagnostik: tanggal next-update yang tidak bisa diparse
    unparseable_dates: int = 0
    unparseable_samples: List[str] = Field(default_factory=list)

    def core_counts(self) -> dict:
        """Angka yang harus sama antara dashboard utama dan forensics."""
        return self.model_dump(include={
            'overdue', 'waiting_quote', 'in_work', 'shipped', 'approved',
            'value_in_work', 'total_active', 'unparseable_dates',
        })


class DateParseErrorSample(BaseModel):
    repair_order_id: int
    ro_number: int
    value: str


class DateParseErrors(BaseModel):
    count: int = 0
    samples: List[DateParseErrorSample] = Field(default_factory=list)


class StatusDistributionRow(BaseModel):
    status: Optional[str] = None
    count: int
    total_estimated_cost: float = 0.0


class ForensicsReport(BaseModel):
    timestamp: datetime
    total_in_db: int
    total_active: int
    stats: DashboardStats
    date_parse_errors: DateParseErrors
    status_distribution: List[StatusDistributionRow]
