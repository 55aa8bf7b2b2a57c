"""
API Response Models
===================

Standardized API response models.
"""

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .schemas import ActionResult

# error_code dari ActionResult -> HTTP status
ERROR_STATUS_CODES = {
    'AUTH_ERROR': status.HTTP_401_UNAUTHORIZED,
    'VALIDATION_ERROR': status.HTTP_400_BAD_REQUEST,
    'NOT_FOUND': status.HTTP_404_NOT_FOUND,
    'CONFLICT_ERROR': status.HTTP_409_CONFLICT,
    'API_ERROR': status.HTTP_502_BAD_GATEWAY,
    'EXTERNAL_SERVICE_ERROR': status.HTTP_502_BAD_GATEWAY,
}


class APIResponse:
    """Standard API response format"""

    @staticmethod
    def success(data=None, message="Success"):
        return {
            "success": True,
            "message": message,
            "data": data
        }

    @staticmethod
    def error(message="Error", error_code=None, details=None):
        return {
            "success": False,
            "message": message,
            "error_code": error_code,
            "details": details or {}
        }

    @staticmethod
    def paginated(data, pagination, message="Success"):
        return {
            "success": True,
            "message": message,
            "data": data,
            "pagination": pagination
        }


def error_status_code(error_code: str) -> int:
    return ERROR_STATUS_CODES.get(error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def respond(result: ActionResult, message: str = "Success"):
    """ActionResult -> response body; failure jadi JSONResponse dengan status sesuai error_code."""
    if not result.success:
        return JSONResponse(
            status_code=error_status_code(result.error_code),
            content=jsonable_encoder(APIResponse.error(result.error, result.error_code, result.details)),
        )
    data = result.data
    if isinstance(data, dict) and 'items' in data and 'pagination' in data:
        return APIResponse.paginated(data['items'], data['pagination'], message)
    return APIResponse.success(data, message)
