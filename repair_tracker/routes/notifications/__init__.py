"""
Notification Domain Routes
==========================
"""

from .notification_routes import router as notification_router

__all__ = ['notification_router']
