"""
Reporting Domain Services
=========================

Services untuk dashboard stats dan diagnostik
"""

from .stats import compute_stats
from .dashboard_service import DashboardService
from .forensics_service import ForensicsService

__all__ = [
    'compute_stats',
    'DashboardService',
    'ForensicsService'
]
