from pydantic import BaseModel, Field
from typing import Optional

from .base import InputSchema


class DocumentFile(BaseModel):
    id: str
    name: str
    size: int = 0
    created_at: Optional[str] = None
    modified_at: Optional[str] = None
    web_url: Optional[str] = None
    download_url: Optional[str] = None


class DocumentUploadSchema(InputSchema):
    file_name: str = Field(min_length=1, max_length=255)
    content_base64: str = Field(min_length=1)


class DocumentDeleteSchema(InputSchema):
    file_name: str = Field(min_length=1, max_length=255)
