"""
Dashboard Routes
================

Statistik dashboard dan diagnostics (forensics)
"""

from fastapi import APIRouter, Depends, Query
from typing import Dict, Any

from ...services import ServiceRegistry
from ...dependencies import get_service_registry
from ...responses import respond

router = APIRouter()
forensics_router = APIRouter()

@router.get("/stats", response_model=Dict[str, Any])
async def get_dashboard_stats(
    refresh: bool = Query(False),
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Statistik RO aktif

    **Query Parameters:**
    - refresh: Abaikan cache session dan hitung ulang
    """
    result = await service_registry.dashboard_service.get_stats(use_cache=not refresh)
    return respond(result)

@router.get("/shops", response_model=Dict[str, Any])
async def get_unique_shops(
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.dashboard_service.get_unique_shops()
    return respond(result)

@router.get("/statuses", response_model=Dict[str, Any])
async def get_unique_statuses(
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.dashboard_service.get_unique_statuses()
    return respond(result)

@forensics_router.get("", response_model=Dict[str, Any])
async def get_dashboard_forensics(
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Diagnostics: hitung ulang stats dari data mentah

    **Returns:**
    - timestamp, total_in_db, total_active
    - stats: harus sama dengan /api/dashboard/stats
    - date_parse_errors: jumlah dan sample tanggal yang gagal diparse
    - status_distribution: jumlah RO per status
    """
    result = await service_registry.forensics_service.run()
    return respond(result)
