"""
ERP Sync Routes
===============

Sync purchase order dari ERP ke repair order lokal
"""

from fastapi import APIRouter, Depends, Query
from typing import Dict, Any

from ...services import ServiceRegistry
from ...schemas import SyncRequestSchema, SyncAllRequestSchema
from ...dependencies import get_service_registry
from ...responses import respond

router = APIRouter()

@router.get("/external", response_model=Dict[str, Any])
async def get_external_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """List purchase order langsung dari ERP (tanpa sync)"""
    result = await service_registry.erp_sync_service.fetch_external_list(page_size=page_size, page=page)
    return respond(result)

@router.post("/orders/{external_id}", response_model=Dict[str, Any])
async def sync_order(
    external_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Sync satu PO

    **Returns:**
    - action: CREATE / UPDATE
    - local_id, ro_number, external_id
    """
    result = await service_registry.erp_sync_service.sync_one(external_id)
    return respond(result, "Order synced successfully")

@router.post("/orders", response_model=Dict[str, Any])
async def sync_orders(
    sync_data: SyncRequestSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """Sync beberapa PO; gagal satu tidak menghentikan yang lain"""
    result = await service_registry.erp_sync_service.sync_many(sync_data.external_ids)
    return respond(result, "Sync finished")

@router.post("/all", response_model=Dict[str, Any])
async def sync_all_orders(
    sync_data: SyncAllRequestSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.erp_sync_service.sync_all(
        page_size=sync_data.page_size, max_pages=sync_data.max_pages
    )
    return respond(result, "Sync finished")

@router.post("/trigger", response_model=Dict[str, Any])
async def trigger_background_sync(
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """Jalankan full sync di background worker"""
    result = await service_registry.erp_sync_service.trigger_background_sync(service_registry.user.id)
    return respond(result, "Background sync triggered")
