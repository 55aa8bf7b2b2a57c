"""
Notification Routes
===================

Approval queue: list pending, create, approve, reject
"""

from fastapi import APIRouter, Depends
from typing import Dict, Any

from ...services import ServiceRegistry
from ...schemas import NotificationCreateSchema
from ...dependencies import get_service_registry
from ...responses import respond

router = APIRouter()

@router.get("/pending", response_model=Dict[str, Any])
async def get_pending_notifications(
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """Item PENDING_APPROVAL, terbaru dulu, dengan RO number dan shop"""
    result = await service_registry.notification_service.get_pending()
    return respond(result)

@router.post("", response_model=Dict[str, Any])
async def create_notification(
    notification_data: NotificationCreateSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Masukkan notification ke approval queue

    Kalau RO sudah punya item pending, id item itu yang dikembalikan.
    """
    result = await service_registry.notification_service.create_notification(
        notification_data, owner=service_registry.user.id
    )
    return respond(result, "Notification queued successfully")

@router.post("/{notification_id}/approve", response_model=Dict[str, Any])
async def approve_notification(
    notification_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Approve dan dispatch task delivery

    **Returns:**
    - run_id: Background task run id
    - public_access_token: Token untuk polling status run
    """
    result = await service_registry.notification_service.approve(
        notification_id, user_id=service_registry.user.id
    )
    return respond(result, "Notification approved")

@router.post("/{notification_id}/reject", response_model=Dict[str, Any])
async def reject_notification(
    notification_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.notification_service.reject(notification_id)
    return respond(result, "Notification rejected")
