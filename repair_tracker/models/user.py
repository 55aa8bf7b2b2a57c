import uuid
from sqlalchemy import Column, Integer, String, ForeignKey, Text, Boolean, DateTime, UniqueConstraint

from .base import BaseModel


class User(BaseModel):
    """User aplikasi. Login lewat OAuth provider, tidak ada password lokal."""
    __tablename__ = 'users'

    public_id = Column(String(36), default=lambda: str(uuid.uuid4()), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255))
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime)

    @property
    def display_name(self):
        return self.name or self.email

    def __repr__(self):
        return f'<User {self.email}>'


class Account(BaseModel):
    """
    Akun OAuth yang terhubung ke user.

    refresh_token disimpan supaya background worker bisa bertindak atas
    nama user (upload dokumen dll).
    """
    __tablename__ = 'accounts'
    __table_args__ = (UniqueConstraint('provider', 'provider_account_id', name='uq_account_provider'),)

    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    provider = Column(String(100), nullable=False)
    provider_account_id = Column(String(255), nullable=False)
    refresh_token = Column(Text)
    access_token = Column(Text)
    expires_at = Column(Integer)  # unix timestamp
    scope = Column(Text)
