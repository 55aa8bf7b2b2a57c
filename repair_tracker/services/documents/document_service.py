"""
Document Service
================

Upload / list / delete dokumen RO di cloud drive. Upload dikirim base64
(boleh dengan prefix data URL), maksimal 10 MB.
"""

import asyncio
import base64
import binascii
import math
import re
from typing import Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..base import BaseService, action_result
from ..exceptions import ValidationError
from ...events import EventBus
from ...models import RepairOrder
from ...schemas import DocumentDeleteSchema, DocumentFile, DocumentUploadSchema

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
_DATA_URL_PREFIX = re.compile(r'^data:[^;]+;base64,')

AccessTokenProvider = Callable[[], Awaitable[str]]


def estimate_decoded_size(content_base64: str) -> int:
    return math.ceil(len(content_base64) * 3 / 4)


class DocumentService(BaseService):
    """Service untuk dokumen repair order"""

    def __init__(self, db_session: AsyncSession, drive_client, access_token_provider: AccessTokenProvider,
                 current_user: str = None, event_bus: Optional[EventBus] = None,
                 max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES):
        super().__init__(db_session, current_user, event_bus)
        self.drive_client = drive_client
        self.access_token_provider = access_token_provider
        self.max_upload_bytes = max_upload_bytes

    @action_result
    async def upload(self, order_id: int, data: DocumentUploadSchema) -> DocumentFile:
        order = await self._get_or_404(RepairOrder, order_id)

        content_base64 = _DATA_URL_PREFIX.sub('', data.content_base64)
        if estimate_decoded_size(content_base64) > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes // (1024 * 1024)
            raise ValidationError(f"File size exceeds {limit_mb}MB limit", field='content_base64')
        try:
            content = base64.b64decode(content_base64, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError("File content is not valid base64", field='content_base64')

        token = await self.access_token_provider()
        document = await asyncio.to_thread(
            self.drive_client.upload, token, order.ro_number, data.file_name, content
        )

        await self._log_activity(order.id, 'DOCUMENT_UPLOADED', field='documents', new_value=data.file_name)
        await self.db_session.commit()
        self.logger.info(f"Uploaded {data.file_name} ({len(content)} bytes) to RO #{order.ro_number}")
        return document

    @action_result
    async def list_documents(self, order_id: int) -> List[DocumentFile]:
        order = await self._get_or_404(RepairOrder, order_id)
        token = await self.access_token_provider()
        return await asyncio.to_thread(self.drive_client.list_files, token, order.ro_number)

    @action_result
    async def delete_document(self, order_id: int, file_id: str, data: DocumentDeleteSchema) -> Dict[str, str]:
        order = await self._get_or_404(RepairOrder, order_id)
        token = await self.access_token_provider()
        await asyncio.to_thread(self.drive_client.delete, token, file_id)

        await self._log_activity(order.id, 'DOCUMENT_DELETED', field='documents', old_value=data.file_name)
        await self.db_session.commit()
        return {'id': file_id}

    @action_result
    async def get_download_url(self, order_id: int, file_id: str) -> Dict[str, str]:
        await self._get_or_404(RepairOrder, order_id)
        token = await self.access_token_provider()
        url = await asyncio.to_thread(self.drive_client.get_download_url, token, file_id)
        return {'url': url}
