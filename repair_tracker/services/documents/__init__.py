"""
Document Domain Services
========================

Dokumen repair order di cloud drive (SharePoint lewat Graph API)
"""

from .drive_client import DriveClient
from .document_service import DocumentService

__all__ = [
    'DriveClient',
    'DocumentService'
]
