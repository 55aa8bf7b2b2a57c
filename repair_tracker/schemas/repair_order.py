"""
Repair Order Schemas
====================
"""

from pydantic import Field, field_validator
from datetime import datetime
from typing import Optional

from .base import BaseSchema, InputSchema


class RepairOrderSchema(BaseSchema):
    ro_number: int
    erp_po_id: Optional[str] = None
    erp_last_sync_at: Optional[datetime] = None
    erp_sync_status: Optional[str] = None
    shop_name: Optional[str] = None
    part: Optional[str] = None
    serial: Optional[str] = None
    part_description: Optional[str] = None
    req_work: Optional[str] = None
    shop_ref: Optional[str] = None
    estimated_cost: Optional[float] = None
    final_cost: Optional[float] = None
    terms: Optional[str] = None
    current_status: Optional[str] = None
    genthrust_status: Optional[str] = None
    shop_status: Optional[str] = None
    date_made: Optional[str] = None
    date_dropped_off: Optional[str] = None
    estimated_delivery_date: Optional[str] = None
    current_status_date: Optional[str] = None
    last_date_updated: Optional[str] = None
    next_date_to_update: Optional[str] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None


class RepairOrderCreateSchema(InputSchema):
    shop_name: str = Field(min_length=1, max_length=255)
    part: str = Field(min_length=1, max_length=255)
    serial: Optional[str] = None
    part_description: Optional[str] = None
    req_work: Optional[str] = None
    estimated_cost: Optional[float] = Field(None, ge=0)


class RepairOrderUpdateSchema(InputSchema):
    """Semua field optional; hanya field yang dikirim yang diupdate."""
    shop_name: Optional[str] = Field(None, max_length=255)
    part: Optional[str] = Field(None, max_length=255)
    serial: Optional[str] = None
    part_description: Optional[str] = None
    req_work: Optional[str] = None
    shop_ref: Optional[str] = None
    estimated_cost: Optional[float] = Field(None, ge=0)
    final_cost: Optional[float] = Field(None, ge=0)
    terms: Optional[str] = None
    current_status: Optional[str] = None
    genthrust_status: Optional[str] = None
    shop_status: Optional[str] = None
    date_dropped_off: Optional[str] = None
    estimated_delivery_date: Optional[str] = None
    next_date_to_update: Optional[str] = None
    tracking_number: Optional[str] = None


class StatusUpdateSchema(InputSchema):
    status: str = Field(min_length=1, max_length=100)
    notes: Optional[str] = None


class NoteCreateSchema(InputSchema):
    note: str = Field(min_length=1)


class RelationCreateSchema(InputSchema):
    target_ro_id: int
    relation_type: str = Field('RELATED', min_length=1, max_length=50)

    @field_validator('relation_type')
    @classmethod
    def upper_relation_type(cls, v: str) -> str:
        return v.upper()


class ActivityLogSchema(BaseSchema):
    repair_order_id: int
    action: str
    field: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    user_id: Optional[str] = None


class StatusHistorySchema(BaseSchema):
    repair_order_id: int
    status: str
    previous_status: Optional[str] = None
    changed_by: Optional[str] = None
    changed_at: Optional[datetime] = None
    notes: Optional[str] = None


class RelatedOrderSchema(InputSchema):
    relation_id: int
    repair_order_id: int
    ro_number: int
    shop_name: Optional[str] = None
    part: Optional[str] = None
    relation_type: str
    direction: str  # OUTGOING / INCOMING
