"""
API Dependencies
================

FastAPI dependencies for the repair tracker application.
"""

from typing import Any, Dict

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .config import settings
from .database import get_db_session
from .events import EventBus, SessionState
from .services import AuthService, ServiceRegistry
from .services.exceptions import AuthError

# Security
security = HTTPBearer()


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_external_clients(request: Request) -> Dict[str, Any]:
    """Client external yang di-share, dibuat sekali di lifespan app (lihat create_app)."""
    return getattr(request.app.state, 'external_clients', {})


# Dependency untuk get session yang sedang login
async def get_current_session(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db_session = Depends(get_db_session)
) -> Dict[str, Any]:
    """Verify bearer token, return ``{'user': User, 'session_id': str, 'expires_at': datetime}``"""
    auth_service = AuthService(
        db_session=db_session,
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    try:
        return await auth_service.verify_session_token(credentials.credentials)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"}
        )


def get_session_state(
    request: Request,
    session: Dict[str, Any] = Depends(get_current_session)
) -> SessionState:
    """State milik session ini (cached stats, flag sync)"""
    return request.app.state.session_states.get_or_create(
        session['session_id'], expires_at=session.get('expires_at')
    )


# Dependency untuk get service registry
async def get_service_registry(
    db_session = Depends(get_db_session),
    session: Dict[str, Any] = Depends(get_current_session),
    session_state: SessionState = Depends(get_session_state),
    event_bus: EventBus = Depends(get_event_bus),
    external_clients: Dict[str, Any] = Depends(get_external_clients)
) -> ServiceRegistry:
    """Get service registry dengan current user"""
    return ServiceRegistry(
        db_session=db_session,
        config=settings,
        current_user=session['user'],
        event_bus=event_bus,
        session_state=session_state,
        **external_clients
    )
