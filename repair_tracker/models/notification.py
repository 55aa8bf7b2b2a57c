from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON

from .base import BaseModel


class NotificationQueueItem(BaseModel):
    """
    Aksi outbound (email draft / task reminder) yang harus di-approve manusia.

    Flow: PENDING_APPROVAL -> APPROVED | REJECTED -> SENT (FAILED kalau
    delivery gagal terus).
    """
    __tablename__ = 'notification_queue'

    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    repair_order_id = Column(Integer, ForeignKey('repair_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # EMAIL_DRAFT, TASK_REMINDER
    status = Column(String(20), nullable=False, default='PENDING_APPROVAL', index=True)
    payload = Column(JSON, nullable=False)
    scheduled_for = Column(DateTime)

    # Diisi setelah email terkirim, untuk threading
    outlook_message_id = Column(String(255))
    outlook_conversation_id = Column(String(255))

    def __repr__(self):
        return f'<NotificationQueueItem {self.type} RO({self.repair_order_id}) - {self.status}>'
