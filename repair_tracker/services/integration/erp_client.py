"""
ERP Client
==========

HTTP client untuk ERP (erp.aero). Auth pakai form-encoded POST ke
``/auth/signin``; token di-cache per instance sampai 60 detik sebelum expired.
Semua response divalidasi ke schema di ``schemas.erp``.

Client ini synchronous (``requests``); dari kode async panggil lewat
``asyncio.to_thread``.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..exceptions import ApiError, AuthError
from ...config import settings as default_settings
from ...schemas.erp import (
    ERPAuthData, ERPEnvelope, ERPListData, ERPOrderDetails, ERPOrderSummary,
)
from .erp_mapping import map_erp_status

logger = logging.getLogger(__name__)


class ERPClient:
    TOKEN_REFRESH_BUFFER_SECONDS = 60
    DEFAULT_TOKEN_LIFETIME_SECONDS = 3600

    def __init__(self, base_url: str, cid: Optional[str], email: Optional[str],
                 password: Optional[str], source: str = "genthrust-ro-tracker",
                 timeout: int = 30, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.cid = cid
        self.email = email
        self.password = password
        self.source = source
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token: Optional[str] = None
        self._token_expiry: float = 0

    @classmethod
    def from_settings(cls, settings=None, session: Optional[requests.Session] = None) -> "ERPClient":
        settings = settings or default_settings
        return cls(
            base_url=settings.ERP_API_BASE_URL,
            cid=settings.ERP_CID,
            email=settings.ERP_EMAIL,
            password=settings.ERP_PASSWORD,
            source=settings.ERP_SOURCE,
            timeout=settings.ERP_TIMEOUT,
            session=session,
        )

    def close(self) -> None:
        self.session.close()
        self._token = None

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def authenticate(self) -> str:
        """Login ke ERP dan simpan token. Raise AuthError kalau gagal."""
        if not (self.cid and self.email and self.password):
            raise AuthError("Missing ERP credentials: ERP_CID, ERP_EMAIL and ERP_PASSWORD must be set")

        form = {
            'cid': self.cid,
            'email': self.email,
            'password': self.password,
            'type': 'user',
            'source': self.source,
        }
        try:
            response = self.session.post(
                f"{self.base_url}/auth/signin",
                data=form,
                headers={'Accept': 'application/json'},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise AuthError(f"ERP auth request failed: {str(e)}")

        try:
            body = response.json()
        except ValueError:
            raise AuthError(f"ERP auth returned non-JSON response ({response.status_code})")

        if not response.ok:
            message = body.get('error') or body.get('msg') if isinstance(body, dict) else None
            raise AuthError(f"ERP auth failed: {message or f'HTTP {response.status_code}'}")

        try:
            envelope = ERPEnvelope.model_validate(body)
            auth_data = ERPAuthData.model_validate(envelope.data or {})
        except PydanticValidationError:
            raise AuthError("ERP auth response has an unexpected shape")

        if envelope.res != 1 or not auth_data.token:
            raise AuthError(f"ERP auth rejected: {envelope.error or envelope.msg or 'invalid credentials'}")

        now = time.time()
        self._token = auth_data.token
        self._token_expiry = auth_data.token_expire or now + self.DEFAULT_TOKEN_LIFETIME_SECONDS
        logger.info("Authenticated against ERP")
        return self._token

    def _get_token(self) -> str:
        if self._token and time.time() < self._token_expiry - self.TOKEN_REFRESH_BUFFER_SECONDS:
            return self._token
        return self.authenticate()

    def clear_token(self) -> None:
        self._token = None
        self._token_expiry = 0

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _make_erp_request(self, method: str, endpoint: str,
                          params: Dict[str, Any] = None) -> Any:
        """
        Kirim request ke ERP dan return ``data`` dari envelope.

        401 sekali -> token dibuang dan request diulang satu kali.
        """
        url = f"{self.base_url}{endpoint}"

        def send(token: str) -> requests.Response:
            return self.session.request(
                method,
                url,
                params=params,
                headers={
                    'Authorization': f'Bearer {token}',
                    'Accept': 'application/json',
                },
                timeout=self.timeout,
            )

        try:
            response = send(self._get_token())
            if response.status_code == 401:
                logger.info(f"ERP returned 401 for {endpoint}, re-authenticating")
                self.clear_token()
                response = send(self._get_token())
        except requests.exceptions.Timeout:
            raise ApiError("ERP API request timeout")
        except requests.exceptions.ConnectionError:
            raise ApiError("Failed to connect to ERP system")
        except requests.exceptions.RequestException as e:
            raise ApiError(f"ERP API request failed: {str(e)}")

        if response.status_code == 401:
            raise AuthError("ERP rejected the refreshed token")
        if not response.ok:
            raise ApiError(
                f"ERP API error: {response.status_code} {response.reason}",
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            envelope = ERPEnvelope.model_validate(response.json())
        except (ValueError, PydanticValidationError):
            raise ApiError(f"ERP response for {endpoint} has an unexpected shape",
                           status_code=response.status_code, response_body=response.text)

        if envelope.res != 1:
            raise ApiError(f"ERP API returned failure: {envelope.error or envelope.msg or f'res={envelope.res}'}",
                           status_code=response.status_code, response_body=response.text)
        return envelope.data

    def _validate(self, schema: type, data: Any, endpoint: str) -> BaseModel:
        try:
            return schema.model_validate(data)
        except PydanticValidationError as e:
            raise ApiError(f"ERP response for {endpoint} failed validation: {e.error_count()} error(s)",
                           details={'errors': [
                               f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                               for err in e.errors()
                           ]})

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def fetch_list(self, page_size: int = 50, page: int = 1) -> List[ERPOrderSummary]:
        """Satu halaman repair order, urut modified_time terbaru dulu. ``page`` mulai dari 1."""
        endpoint = '/repair_order/list'
        data = self._make_erp_request('GET', endpoint, params={
            'order': 'modified_time',
            'direction': 'desc',
            'page_size': page_size,
            'page': page,
        })
        list_data = self._validate(ERPListData, data, endpoint)
        return [
            ERPOrderSummary(
                external_id=item.body.po_id,
                order_no=item.body.po_no,
                status=map_erp_status(item.body.status.status),
                raw_status=item.body.status.status,
                modified_time=item.body.modified_time,
                created_time=item.body.created_time,
                vendor_name=item.body.vendor.vendorname if item.body.vendor else None,
            )
            for item in list_data.items
        ]

    def fetch_details(self, external_id: int) -> ERPOrderDetails:
        endpoint = '/repair_order/details'
        data = self._make_erp_request('GET', endpoint, params={'po_id': external_id})
        return self._validate(ERPOrderDetails, data, endpoint)
