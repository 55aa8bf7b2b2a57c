from sqlalchemy import Column, DateTime, Integer
from datetime import datetime, timezone

from ..database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, sama dengan yang disimpan di kolom DateTime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Abstract class dengan kolom umum; tidak dibuat jadi table sendiri.
class BaseModel(Base):
    __abstract__ = True
    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
