"""
Repair Order Domain Services
===========================
"""

from .repair_order_service import RepairOrderService

__all__ = [
    'RepairOrderService'
]
