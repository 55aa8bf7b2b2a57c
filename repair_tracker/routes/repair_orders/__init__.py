"""
Repair Order Domain Routes
==========================

Routes untuk repair order dan dokumennya
"""

from .repair_order_routes import router as repair_order_router
from .document_routes import router as document_router

__all__ = ['repair_order_router', 'document_router']
