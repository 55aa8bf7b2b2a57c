"""
ERP Sync Domain Routes
======================
"""

from .sync_routes import router as sync_router

__all__ = ['sync_router']
