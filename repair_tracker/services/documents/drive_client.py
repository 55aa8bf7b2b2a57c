"""
Drive Client
============

Client Graph API untuk document library SharePoint. Satu folder per RO di
bawah ``/Repair Orders/RO-{nomor}``. Semua call atas nama user (access
token OAuth user), jadi token selalu jadi argumen pertama.
"""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from ..exceptions import AuthError, ExternalServiceError, NotFoundError
from ...config import settings as default_settings
from ...schemas import DocumentFile

logger = logging.getLogger(__name__)

ROOT_FOLDER = "Repair Orders"
_UNSAFE_FOLDER_CHARS = re.compile(r'[^A-Za-z0-9\-_]')
_UNSAFE_FILE_CHARS = re.compile(r'[<>:"/\\|?*]')


def folder_name(ro_number) -> str:
    """'RO-' + nomor RO, karakter di luar [A-Za-z0-9-_] jadi '_'."""
    return f"RO-{_UNSAFE_FOLDER_CHARS.sub('_', str(ro_number))}"


def sanitize_file_name(file_name: str) -> str:
    return _UNSAFE_FILE_CHARS.sub('_', file_name)


class DriveClient:
    def __init__(self, base_url: str, site_id: Optional[str], timeout: int = 30,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.site_id = site_id
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings=None) -> "DriveClient":
        settings = settings or default_settings
        return cls(settings.GRAPH_API_BASE_URL, settings.SHAREPOINT_SITE_ID)

    def close(self) -> None:
        self.session.close()

    @property
    def drive_path(self) -> str:
        if not self.site_id:
            raise ExternalServiceError('DRIVE', "SHAREPOINT_SITE_ID is not configured")
        return f"/sites/{self.site_id}/drive"

    def _folder_path(self, ro_number) -> str:
        return f"{self.drive_path}/root:/{quote(ROOT_FOLDER)}/{folder_name(ro_number)}:"

    def _request(self, access_token: str, method: str, path: str, **kwargs) -> requests.Response:
        headers = kwargs.pop('headers', {})
        headers['Authorization'] = f'Bearer {access_token}'
        try:
            response = self.session.request(method, f"{self.base_url}{path}", headers=headers,
                                            timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise ExternalServiceError('DRIVE', f"Request failed: {str(e)}")

        if response.status_code == 401:
            raise AuthError("Drive access token was rejected, please sign in again")
        return response

    @staticmethod
    def _raise_for_status(response: requests.Response, action: str) -> None:
        if not response.ok:
            raise ExternalServiceError('DRIVE', f"Failed to {action}: HTTP {response.status_code}",
                                       status_code=response.status_code)

    @staticmethod
    def _to_document(item: Dict[str, Any]) -> DocumentFile:
        return DocumentFile(
            id=item['id'],
            name=item.get('name', ''),
            size=item.get('size') or 0,
            created_at=item.get('createdDateTime'),
            modified_at=item.get('lastModifiedDateTime'),
            web_url=item.get('webUrl'),
            download_url=item.get('@microsoft.graph.downloadUrl'),
        )

    def ensure_folder(self, access_token: str, ro_number) -> str:
        """Return id folder RO, dibuat kalau belum ada."""
        response = self._request(access_token, 'GET', self._folder_path(ro_number))
        if response.ok:
            return response.json()['id']
        if response.status_code != 404:
            self._raise_for_status(response, f"look up folder {folder_name(ro_number)}")

        parent = self._request(access_token, 'GET', f"{self.drive_path}/root:/{quote(ROOT_FOLDER)}:")
        if parent.status_code == 404:
            raise ExternalServiceError(
                'DRIVE', f"Folder '{ROOT_FOLDER}' not found. Please create it in the document library first."
            )
        self._raise_for_status(parent, f"look up folder {ROOT_FOLDER}")

        created = self._request(
            access_token, 'POST', f"{self.drive_path}/items/{parent.json()['id']}/children",
            json={
                'name': folder_name(ro_number),
                'folder': {},
                '@microsoft.graph.conflictBehavior': 'fail',
            },
        )
        self._raise_for_status(created, f"create folder {folder_name(ro_number)}")
        logger.info(f"Created drive folder {folder_name(ro_number)}")
        return created.json()['id']

    def upload(self, access_token: str, ro_number, file_name: str, content: bytes) -> DocumentFile:
        folder_id = self.ensure_folder(access_token, ro_number)
        path = f"{self.drive_path}/items/{folder_id}:/{quote(sanitize_file_name(file_name))}:/content"
        response = self._request(access_token, 'PUT', path, data=content,
                                 headers={'Content-Type': 'application/octet-stream'})
        self._raise_for_status(response, f"upload {file_name}")
        return self._to_document(response.json())

    def list_files(self, access_token: str, ro_number) -> List[DocumentFile]:
        """File di folder RO (subfolder tidak ikut). Folder belum ada = list kosong."""
        response = self._request(access_token, 'GET', f"{self._folder_path(ro_number)}/children")
        if response.status_code == 404:
            return []
        self._raise_for_status(response, f"list documents for RO {ro_number}")
        return [self._to_document(item) for item in response.json().get('value', []) if 'file' in item]

    def delete(self, access_token: str, file_id: str) -> None:
        response = self._request(access_token, 'DELETE', f"{self.drive_path}/items/{file_id}")
        if response.status_code == 404:
            raise NotFoundError('Document', file_id)
        self._raise_for_status(response, f"delete document {file_id}")

    def get_download_url(self, access_token: str, file_id: str) -> str:
        response = self._request(access_token, 'GET', f"{self.drive_path}/items/{file_id}",
                                 params={'select': 'id,@microsoft.graph.downloadUrl'})
        if response.status_code == 404:
            raise NotFoundError('Document', file_id)
        self._raise_for_status(response, f"get download url for {file_id}")
        url = response.json().get('@microsoft.graph.downloadUrl')
        if not url:
            raise ExternalServiceError('DRIVE', f"No download url returned for {file_id}")
        return url
