from pydantic import EmailStr
from datetime import datetime
from typing import Optional

from .base import BaseSchema, InputSchema


class UserSchema(BaseSchema):
    public_id: str
    email: EmailStr
    name: Optional[str] = None
    is_active: bool = True
    last_login: Optional[datetime] = None


class UserCreateSchema(InputSchema):
    email: EmailStr
    name: Optional[str] = None
