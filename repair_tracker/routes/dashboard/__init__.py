"""
Dashboard Domain Routes
=======================
"""

from .dashboard_routes import router as dashboard_router
from .dashboard_routes import forensics_router

__all__ = ['dashboard_router', 'forensics_router']
