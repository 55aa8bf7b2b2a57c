"""
Authentication Routes
=====================

Info session user yang sedang login dan logout
"""

from fastapi import APIRouter, Depends, Request
from typing import Dict, Any

from ...schemas import UserSchema
from ...dependencies import get_current_session
from ...responses import APIResponse

router = APIRouter()

@router.get("/me", response_model=Dict[str, Any])
async def get_me(session: Dict[str, Any] = Depends(get_current_session)):
    """
    Profile user dari bearer token

    **Returns:**
    - user: User profile data
    - session_id: Session id dari token
    """
    return APIResponse.success(
        data={
            'user': UserSchema.model_validate(session['user']),
            'session_id': session['session_id'],
        },
        message="Session is valid"
    )


@router.post("/logout", response_model=Dict[str, Any])
async def logout(request: Request, session: Dict[str, Any] = Depends(get_current_session)):
    """Buang state session ini (cached stats, flag sync)"""
    request.app.state.session_states.discard(session['session_id'])
    return APIResponse.success(message="Session state cleared")
