"""
Repair Order Routes
===================

CRUD routes untuk repair order, status, notes, dan relasi antar RO
"""

from fastapi import APIRouter, Depends, Query
from typing import Dict, Any, Optional

from ...services import ServiceRegistry
from ...schemas import (
    RepairOrderCreateSchema, RepairOrderUpdateSchema, StatusUpdateSchema,
    NoteCreateSchema, RelationCreateSchema,
)
from ...dependencies import get_service_registry
from ...responses import respond

router = APIRouter()

@router.get("", response_model=Dict[str, Any])
async def get_repair_orders(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    overdue: bool = Query(False),
    status: Optional[str] = Query(None),
    shop: Optional[str] = Query(None),
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Get repair order aktif dengan pagination dan filtering

    **Query Parameters:**
    - page: Page number (default: 1)
    - per_page: Items per page (default: 20, max: 100)
    - search: Search dalam RO number, shop, part, serial, description
    - overdue: Hanya RO yang next update-nya sudah lewat
    - status: Filter prefix status (case-insensitive)
    - shop: Filter shop name (case-insensitive)
    """
    result = await service_registry.repair_order_service.list_orders(
        page=page,
        per_page=per_page,
        search=search,
        overdue=overdue,
        status=status,
        shop=shop
    )
    return respond(result, "Repair orders retrieved successfully")

@router.post("", response_model=Dict[str, Any])
async def create_repair_order(
    order_data: RepairOrderCreateSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Create repair order baru

    RO number = max + 1, status awal WAITING QUOTE.
    """
    result = await service_registry.repair_order_service.create_order(order_data)
    return respond(result, "Repair order created successfully")

@router.get("/link-search", response_model=Dict[str, Any])
async def search_for_linking(
    query: str = Query(...),
    exclude_id: int = Query(...),
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """Cari RO untuk di-link (minimal 2 karakter, max 10 hasil)"""
    result = await service_registry.repair_order_service.search_for_linking(query, exclude_id)
    return respond(result)

@router.delete("/relations/{relation_id}", response_model=Dict[str, Any])
async def unlink_repair_orders(
    relation_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.repair_order_service.unlink_orders(relation_id)
    return respond(result, "Relation removed successfully")

@router.get("/{order_id}", response_model=Dict[str, Any])
async def get_repair_order(
    order_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.repair_order_service.get_order(order_id)
    return respond(result)

@router.patch("/{order_id}", response_model=Dict[str, Any])
async def update_repair_order(
    order_id: int,
    order_data: RepairOrderUpdateSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Update field repair order

    Setiap field yang berubah dicatat sebagai activity UPDATE.
    """
    result = await service_registry.repair_order_service.update_order(order_id, order_data)
    return respond(result, "Repair order updated successfully")

@router.patch("/{order_id}/status", response_model=Dict[str, Any])
async def update_repair_order_status(
    order_id: int,
    status_data: StatusUpdateSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Update status repair order

    **Returns:**
    - repair_order: RO setelah update
    - run_id / public_access_token: handle background task lifecycle (kalau ada)
    """
    result = await service_registry.repair_order_service.update_status(order_id, status_data)
    return respond(result, "Status updated successfully")

@router.post("/{order_id}/notes", response_model=Dict[str, Any])
async def add_repair_order_note(
    order_id: int,
    note_data: NoteCreateSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.repair_order_service.append_note(order_id, note_data)
    return respond(result, "Note added successfully")

@router.get("/{order_id}/activity", response_model=Dict[str, Any])
async def get_repair_order_activity(
    order_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.repair_order_service.get_activity_log(order_id)
    return respond(result)

@router.get("/{order_id}/history", response_model=Dict[str, Any])
async def get_repair_order_history(
    order_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.repair_order_service.get_status_history(order_id)
    return respond(result)

@router.get("/{order_id}/relations", response_model=Dict[str, Any])
async def get_related_repair_orders(
    order_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """RO yang terhubung, dua arah (OUTGOING / INCOMING)"""
    result = await service_registry.repair_order_service.get_related_orders(order_id)
    return respond(result)

@router.post("/{order_id}/relations", response_model=Dict[str, Any])
async def link_repair_orders(
    order_id: int,
    relation_data: RelationCreateSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.repair_order_service.link_orders(order_id, relation_data)
    return respond(result, "Repair orders linked successfully")
