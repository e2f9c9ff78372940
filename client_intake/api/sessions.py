"""
Login, logout and current user endpoints
"""

from fastapi import APIRouter, Depends, Request

from .auth import IntakeSystem, client_ip, get_intake_system, require_session
from .schemas import LoginRequest, LoginResponse
from ..rbac import Session


router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    http_request: Request,
    system: IntakeSystem = Depends(get_intake_system)
):
    """Exchange credentials for a bearer token"""
    manager = system.access_manager
    session = manager.authenticate(
        request.username, request.password,
        client_ip(http_request, system.config.trust_forwarded_headers)
    )
    return LoginResponse(
        access_token=manager.issue_token(session),
        session_id=session.id,
        expires_at=session.expires_at.isoformat(),
        is_admin=manager.is_admin(session),
    )


@router.post("/logout")
async def logout(
    session: Session = Depends(require_session),
    system: IntakeSystem = Depends(get_intake_system)
):
    """End the current session; its token stops working immediately"""
    system.access_manager.logout(session.id)
    return {"message": "Logged out"}


@router.get("/me")
async def current_user(
    session: Session = Depends(require_session),
    system: IntakeSystem = Depends(get_intake_system)
):
    user = system.access_manager.get_user(session.user_id)
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "full_name": user.full_name,
        "is_admin": user.is_admin,
        "session_expires_at": session.expires_at.isoformat(),
    }
