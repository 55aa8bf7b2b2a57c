from sqlalchemy import Column, Integer, String, ForeignKey, Text, DateTime, Float, UniqueConstraint

from .base import BaseModel, utcnow


class RepairOrder(BaseModel):
    """Repair order aktif. Tidak pernah di-hard-delete, lifecycle lewat status."""
    __tablename__ = 'repair_orders'

    ro_number = Column(Integer, unique=True, nullable=False, index=True)

    # ERP sync metadata. erp_po_id NULL = belum pernah di-sync
    erp_po_id = Column(String(50), unique=True, nullable=True, index=True)
    erp_last_sync_at = Column(DateTime)
    erp_sync_status = Column(String(20), nullable=False, default='LOCAL_ONLY')  # LOCAL_ONLY, SYNCED, SYNC_FAILED, PENDING_SYNC

    # Shop & part
    shop_name = Column(String(255), index=True)
    part = Column(String(255))
    serial = Column(String(255))
    part_description = Column(Text)
    req_work = Column(Text)
    shop_ref = Column(String(100))

    # Biaya
    estimated_cost = Column(Float)
    final_cost = Column(Float)
    terms = Column(String(100))

    # Status (free text, dinormalisasi waktu dibaca)
    current_status = Column(String(100), index=True)
    genthrust_status = Column(String(100))
    shop_status = Column(String(100))

    # Tanggal disimpan text karena formatnya campur (lihat dates.parse_date)
    date_made = Column(String(50))
    date_dropped_off = Column(String(50))
    estimated_delivery_date = Column(String(50))
    current_status_date = Column(String(50))
    last_date_updated = Column(String(50))
    next_date_to_update = Column(String(50))

    tracking_number = Column(String(255))
    notes = Column(Text)

    def __repr__(self):
        return f'<RepairOrder RO#{self.ro_number} - {self.current_status}>'


class ActivityLog(BaseModel):
    """Audit trail per field. Append-only."""
    __tablename__ = 'ro_activity_log'

    repair_order_id = Column(Integer, ForeignKey('repair_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    action = Column(String(50), nullable=False)  # CREATE, UPDATE, NOTE_ADDED, ERP_SYNC, ...
    field = Column(String(100))
    old_value = Column(Text)
    new_value = Column(Text)
    user_id = Column(String(100))

    def __repr__(self):
        return f'<ActivityLog RO({self.repair_order_id}) - {self.action}>'


class StatusHistory(BaseModel):
    """Riwayat perubahan status. Append-only."""
    __tablename__ = 'ro_status_history'

    repair_order_id = Column(Integer, ForeignKey('repair_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    status = Column(String(100), nullable=False)
    previous_status = Column(String(100))
    changed_by = Column(String(100))
    changed_at = Column(DateTime, default=utcnow, nullable=False)
    notes = Column(Text)


class RepairOrderRelation(BaseModel):
    """Link bertipe antar dua repair order."""
    __tablename__ = 'ro_relations'
    __table_args__ = (UniqueConstraint('source_ro_id', 'target_ro_id', name='uq_ro_relation_pair'),)

    source_ro_id = Column(Integer, ForeignKey('repair_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    target_ro_id = Column(Integer, ForeignKey('repair_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    relation_type = Column(String(50), nullable=False, default='RELATED')
    created_by = Column(String(100))


class Shop(BaseModel):
    """Master data shop, dipakai untuk lookup email follow-up."""
    __tablename__ = 'shops'

    business_name = Column(String(255), nullable=False, index=True)
    email = Column(String(255))
    phone = Column(String(50))
