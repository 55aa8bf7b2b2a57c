"""
Document Routes
===============

Upload, list, delete dokumen RO di cloud drive
"""

from fastapi import APIRouter, Depends, Query
from typing import Dict, Any

from ...services import ServiceRegistry
from ...schemas import DocumentUploadSchema, DocumentDeleteSchema
from ...dependencies import get_service_registry
from ...responses import respond

router = APIRouter()

@router.get("/{order_id}/documents", response_model=Dict[str, Any])
async def get_documents(
    order_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.document_service.list_documents(order_id)
    return respond(result)

@router.post("/{order_id}/documents", response_model=Dict[str, Any])
async def upload_document(
    order_id: int,
    document_data: DocumentUploadSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Upload dokumen (base64) ke folder RO

    **Input validation:**
    - file_name: Required
    - content_base64: Max 10MB setelah decode
    """
    result = await service_registry.document_service.upload(order_id, document_data)
    return respond(result, "Document uploaded successfully")

@router.delete("/{order_id}/documents/{file_id}", response_model=Dict[str, Any])
async def delete_document(
    order_id: int,
    file_id: str,
    file_name: str = Query(..., min_length=1),
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.document_service.delete_document(
        order_id, file_id, DocumentDeleteSchema(file_name=file_name)
    )
    return respond(result, "Document deleted successfully")

@router.get("/{order_id}/documents/{file_id}/download-url", response_model=Dict[str, Any])
async def get_document_download_url(
    order_id: int,
    file_id: str,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.document_service.get_download_url(order_id, file_id)
    return respond(result)
