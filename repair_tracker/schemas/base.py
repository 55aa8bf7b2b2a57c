"""
Base Pydantic Schemas
=====================

Base classes dan schema umum (pagination, ActionResult) pakai Pydantic V2.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime
from typing import Optional, Any, Dict


class BaseSchema(BaseModel):
    """Base schema untuk response dari ORM object."""

    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(
        from_attributes=True,
        extra='ignore',
    )


class InputSchema(BaseModel):
    """Base schema untuk input dari client."""

    model_config = ConfigDict(extra='ignore')

    @model_validator(mode='before')
    @classmethod
    def strip_whitespace(cls, data: Any) -> Any:
        """Strip whitespace dari string fields sebelum validasi."""
        if isinstance(data, dict):
            data = dict(data)
            for key, value in data.items():
                if isinstance(value, str):
                    data[key] = value.strip()
        return data


class PaginationSchema(BaseModel):
    page: int = Field(gt=0, description="Page must be at least 1")
    per_page: int = Field(gt=0, le=100, description="Per page must be between 1 and 100")
    pages: int
    total: int
    has_next: bool
    has_prev: bool


class ActionResult(BaseModel):
    """
    Hasil tagged dari setiap action yang dipanggil boundary (route, CLI, task).

    ``success=True`` bawa ``data``; ``success=False`` bawa ``error`` dan
    ``error_code``. Action tidak pernah melempar exception ke caller.
    """
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, error_code: Optional[str] = None,
             details: Optional[Dict[str, Any]] = None) -> "ActionResult":
        return cls(success=False, error=error, error_code=error_code, details=details or {})
