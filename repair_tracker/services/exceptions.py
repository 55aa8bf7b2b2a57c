"""
Custom Exceptions untuk Repair Tracker Services
===============================================

Definisi semua custom exceptions yang digunakan dalam business logic.
Boundary (``action_result``) mengubah exception ini jadi ActionResult
gagal dengan ``error_code`` masing-masing.
"""

class RepairTrackerError(Exception):
    """Base exception untuk semua Repair Tracker errors"""
    def __init__(self, message, error_code=None, details=None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self):
        return {
            'error': True,
            'message': self.message,
            'error_code': self.error_code,
            'details': self.details
        }

class AuthError(RepairTrackerError):
    """Session tidak valid / credential external expired. User harus sign in lagi."""
    def __init__(self, message="Authentication failed, please sign in again", details=None):
        super().__init__(message, 'AUTH_ERROR', details)

class ApiError(RepairTrackerError):
    """Sistem external balikin shape yang tidak terduga atau kode gagal (retryable)"""
    def __init__(self, message, status_code=None, response_body=None, details=None):
        super().__init__(message, 'API_ERROR', details)
        self.status_code = status_code
        self.response_body = response_body

class ValidationError(RepairTrackerError):
    """Error untuk validation failures (ukuran, shape input)"""
    def __init__(self, message, field=None, details=None):
        super().__init__(message, 'VALIDATION_ERROR', details)
        self.field = field

class NotFoundError(RepairTrackerError):
    """Error ketika resource tidak ditemukan"""
    def __init__(self, resource_type, resource_id, details=None):
        message = f"{resource_type} with ID {resource_id} not found"
        super().__init__(message, 'NOT_FOUND', details)
        self.resource_type = resource_type
        self.resource_id = resource_id

class ConflictError(RepairTrackerError):
    """Error untuk resource conflicts"""
    def __init__(self, message, resource_type=None, details=None):
        super().__init__(message, 'CONFLICT_ERROR', details)
        self.resource_type = resource_type

class ExternalServiceError(RepairTrackerError):
    """Error untuk external service failures (drive, SMTP, task dispatcher)"""
    def __init__(self, service_name, message, status_code=None, details=None):
        super().__init__(f"{service_name}: {message}", 'EXTERNAL_SERVICE_ERROR', details)
        self.service_name = service_name
        self.status_code = status_code
