"""
Test doubles untuk client external (ERP, task dispatcher, SMTP, drive).
"""

from unittest.mock import Mock

from repair_tracker.schemas import DocumentFile, ERPOrderDetails, ERPOrderSummary, TaskHandle
from repair_tracker.services.exceptions import ApiError, ExternalServiceError, NotFoundError


def make_details(external_id, po_no=None, status="Received", vendor="Acme Aero",
                 part="Fuel Pump", serial="SN-1", unit_price=1250.0, condition=None,
                 leadtime="2 WEEKS", created_time="2024-01-01T08:00:00.000Z",
                 modified_time="2024-01-10T12:30:00.000Z", term_sale="NET 30"):
    parts = []
    if part is not None:
        parts.append({
            'id': 1,
            'product': {'name': part},
            'quantity': {'qty': 1},
            'unit_price': unit_price,
            'comment': f"{part} overhaul",
            'tags': {'sn': serial},
            'leadtime': leadtime,
            'condition': condition,
        })
    return ERPOrderDetails.model_validate({
        'body': {
            'po_id': external_id,
            'po_no': po_no or f"RO{1000 + external_id}",
            'status': {'status': status},
            'vendor': {'vendorname': vendor} if vendor else None,
            'ship_via': 'FEDEX 1234',
            'total': unit_price,
            'term_sale': term_sale,
            'modified_time': modified_time,
            'created_time': created_time,
        },
        'partsList': parts,
    })


def make_summary(external_id, status="RECEIVED"):
    return ERPOrderSummary(
        external_id=external_id,
        order_no=f"RO{1000 + external_id}",
        status=status,
        raw_status=status,
        modified_time="2024-01-10T12:30:00.000Z",
    )


def make_response(status_code=200, json_body=None, text='', headers=None):
    """Mock ``requests.Response`` minimal."""
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = 'OK' if status_code < 400 else 'Error'
    response.text = text
    response.headers = headers or {}
    if isinstance(json_body, Exception):
        response.json.side_effect = json_body
    else:
        response.json.return_value = json_body
    return response


class FakeERPClient:
    """ERP client palsu. Details dibuat otomatis kalau tidak di-set."""

    def __init__(self, details=None, pages=None, failing_ids=(), list_error=None, failing_pages=()):
        self.details = dict(details or {})
        self.pages = list(pages or [])
        self.failing_ids = set(failing_ids)
        self.list_error = list_error
        self.failing_pages = set(failing_pages)
        self.requested_pages = []
        self.requested_details = []

    def fetch_list(self, page_size=50, page=1):
        self.requested_pages.append(page)
        if self.list_error is not None:
            raise self.list_error
        if page in self.failing_pages:
            raise ApiError(f"Failed to fetch ERP page {page}", status_code=503)
        if page - 1 < len(self.pages):
            return self.pages[page - 1]
        return []

    def fetch_details(self, external_id):
        self.requested_details.append(external_id)
        if external_id in self.failing_ids:
            raise ApiError(f"ERP API error: 500 for PO {external_id}", status_code=500)
        if external_id not in self.details:
            self.details[external_id] = make_details(external_id)
        return self.details[external_id]


class FakeDispatcher:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def trigger(self, task_id, payload):
        self.calls.append((task_id, payload))
        if self.fail:
            raise ExternalServiceError('TASKS', f"Failed to trigger {task_id}: HTTP 503", status_code=503)
        return TaskHandle(run_id=f"run_{len(self.calls)}", public_access_token=f"pat_{len(self.calls)}")


class FakeEmailSender:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, to_address, subject, body, cc=None, in_reply_to=None):
        if self.fail:
            raise ExternalServiceError('EMAIL', "Failed to send email: connection refused")
        message_id = f"<msg-{len(self.sent) + 1}@genthrust.net>"
        self.sent.append({
            'to': to_address,
            'subject': subject,
            'body': body,
            'cc': cc,
            'in_reply_to': in_reply_to,
            'message_id': message_id,
        })
        return message_id


class FakeDriveClient:
    def __init__(self):
        self.files = {}
        self.tokens = []

    def upload(self, access_token, ro_number, file_name, content):
        self.tokens.append(access_token)
        file_id = f"file-{len(self.files) + 1}"
        document = DocumentFile(id=file_id, name=file_name, size=len(content))
        self.files[file_id] = (ro_number, document, content)
        return document

    def list_files(self, access_token, ro_number):
        self.tokens.append(access_token)
        return [document for owner, document, _ in self.files.values() if owner == ro_number]

    def delete(self, access_token, file_id):
        self.tokens.append(access_token)
        if file_id not in self.files:
            raise NotFoundError('Document', file_id)
        del self.files[file_id]

    def get_download_url(self, access_token, file_id):
        self.tokens.append(access_token)
        if file_id not in self.files:
            raise NotFoundError('Document', file_id)
        return f"https://download.genthrust.net/{file_id}?token=temp"
