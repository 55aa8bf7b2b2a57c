"""
Authentication Service
======================

Session token (JWT bearer) dan akses token OAuth provider.

Login sendiri dilakukan di OAuth provider; service ini cuma menerbitkan /
memverifikasi session token, dan me-refresh access token provider yang
disimpan di ``accounts`` supaya background worker bisa memanggil API
atas nama user.
"""

import asyncio
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
import requests
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..base import BaseService, transactional
from ..exceptions import AuthError, ConflictError, NotFoundError
from ...models import Account, User, utcnow
from ...schemas import UserCreateSchema


class AuthService(BaseService):
    """Service untuk session dan OAuth token"""

    OAUTH_REFRESH_BUFFER_SECONDS = 60

    def __init__(self, db_session: AsyncSession, secret_key: str, algorithm: str = 'HS256',
                 token_expiry_minutes: int = 60 * 24, oauth_config: Dict[str, Any] = None,
                 http_session: Optional[requests.Session] = None, current_user: str = None):
        super().__init__(db_session, current_user)
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.token_expiry_minutes = token_expiry_minutes
        self.oauth_config = oauth_config or {}
        self.http_session = http_session or requests.Session()

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    def issue_session_token(self, user: User, session_id: str = None) -> str:
        """Generate JWT session token"""
        now = datetime.now(timezone.utc)
        payload = {
            'user_id': user.id,
            'email': user.email,
            'session_id': session_id or secrets.token_urlsafe(16),
            'type': 'access',
            'iat': now,
            'exp': now + timedelta(minutes=self.token_expiry_minutes),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    async def verify_session_token(self, token: str) -> Dict[str, Any]:
        """Verify session token, return ``{'user': User, 'session_id': str, 'expires_at': datetime}``."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthError("Session has expired, please sign in again")
        except jwt.InvalidTokenError:
            raise AuthError("Invalid session token")

        if payload.get('type') != 'access':
            raise AuthError("Invalid token type")

        result = await self.db_session.execute(
            select(User).filter(User.id == payload.get('user_id'), User.is_active == True)
        )
        user = result.scalars().first()
        if not user:
            raise AuthError("User not found or inactive")

        expires_at = payload.get('exp')
        return {
            'user': user,
            'session_id': payload.get('session_id'),
            'expires_at': datetime.fromtimestamp(expires_at, tz=timezone.utc) if expires_at else None,
        }

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @transactional
    async def create_user(self, data: UserCreateSchema) -> User:
        existing = await self.db_session.execute(select(User).filter(User.email == data.email))
        if existing.scalars().first():
            raise ConflictError(f"User with email '{data.email}' already exists", 'User')

        user = User(email=data.email, name=data.name)
        self.db_session.add(user)
        await self.db_session.flush()
        self.logger.info(f"Created user {user.email}")
        return user

    async def get_user(self, user_id: int) -> User:
        return await self._get_or_404(User, user_id)

    async def get_user_by_email(self, email: str) -> User:
        result = await self.db_session.execute(select(User).filter(User.email == email))
        user = result.scalars().first()
        if not user:
            raise NotFoundError('User', email)
        return user

    async def record_login(self, user: User) -> None:
        user.last_login = utcnow()
        await self.db_session.commit()

    # ------------------------------------------------------------------
    # OAuth provider token
    # ------------------------------------------------------------------

    async def get_provider_access_token(self, user_id: int) -> str:
        """
        Access token provider untuk user ini. Di-refresh pakai refresh token
        kalau sisa umurnya kurang dari 60 detik.
        """
        provider = self.oauth_config.get('provider', 'microsoft-entra-id')
        result = await self.db_session.execute(
            select(Account).filter(Account.user_id == user_id, Account.provider == provider)
        )
        account = result.scalars().first()
        if not account:
            raise AuthError("No linked account found, please sign in again")

        now = int(time.time())
        if account.access_token and account.expires_at and \
                account.expires_at - self.OAUTH_REFRESH_BUFFER_SECONDS > now:
            return account.access_token

        if not account.refresh_token:
            raise AuthError("Stored credentials have expired, please sign in again")

        tokens = await asyncio.to_thread(self._refresh_tokens, account.refresh_token)
        account.access_token = tokens['access_token']
        account.expires_at = now + int(tokens.get('expires_in', 3600))
        account.refresh_token = tokens.get('refresh_token') or account.refresh_token
        await self.db_session.commit()

        self.logger.info(f"Refreshed {provider} access token for user {user_id}")
        return account.access_token

    def _refresh_tokens(self, refresh_token: str) -> Dict[str, Any]:
        form = {
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token,
            'client_id': self.oauth_config.get('client_id'),
            'client_secret': self.oauth_config.get('client_secret'),
            'scope': self.oauth_config.get('scope'),
        }
        try:
            response = self.http_session.post(self.oauth_config.get('token_url'), data=form, timeout=30)
        except requests.exceptions.RequestException as e:
            raise AuthError(f"Token refresh failed: {str(e)}")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not response.ok or 'access_token' not in body:
            self.logger.warning(
                f"OAuth token refresh rejected: {body.get('error') or response.status_code}"
            )
            raise AuthError()
        return body
