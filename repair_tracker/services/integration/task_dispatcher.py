"""
Background Task Dispatcher
==========================

Trigger job di task runner (fire-and-forget). Return run id dan token
akses realtime yang scoped ke run tersebut, supaya client bisa
subscribe progress tanpa polling.
"""

import logging
from typing import Any, Dict, Optional

import requests

from ..exceptions import ExternalServiceError
from ...config import settings as default_settings
from ...schemas import TaskHandle

logger = logging.getLogger(__name__)

SEND_APPROVED_EMAIL = "send-approved-email"
HANDLE_RO_STATUS_CHANGE = "handle-ro-status-change"
ERP_MANUAL_SYNC = "erp-manual-sync"


class TaskDispatcher:
    def __init__(self, base_url: str, secret_key: Optional[str], timeout: int = 15,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.secret_key = secret_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings=None) -> "TaskDispatcher":
        settings = settings or default_settings
        return cls(settings.TASKS_API_URL, settings.TASKS_SECRET_KEY)

    def close(self) -> None:
        self.session.close()

    def trigger(self, task_id: str, payload: Dict[str, Any]) -> TaskHandle:
        if not self.secret_key:
            raise ExternalServiceError('TASKS', "TASKS_SECRET_KEY is not configured")

        try:
            response = self.session.post(
                f"{self.base_url}/api/v1/tasks/{task_id}/trigger",
                json={'payload': payload},
                headers={
                    'Authorization': f'Bearer {self.secret_key}',
                    'Content-Type': 'application/json',
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise ExternalServiceError('TASKS', f"Failed to trigger {task_id}: {str(e)}")

        if not response.ok:
            raise ExternalServiceError('TASKS', f"Failed to trigger {task_id}: HTTP {response.status_code}",
                                       status_code=response.status_code)
        try:
            data = response.json()
        except ValueError:
            raise ExternalServiceError('TASKS', f"Trigger {task_id} returned non-JSON response")

        run_id = data.get('id')
        if not run_id:
            raise ExternalServiceError('TASKS', f"Trigger {task_id} response has no run id")

        token = data.get('publicAccessToken') or response.headers.get('x-trigger-jwt')
        logger.info(f"Triggered {task_id} as run {run_id}")
        return TaskHandle(run_id=run_id, public_access_token=token)
