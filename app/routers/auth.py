# app/routers/auth.py
from fastapi import APIRouter, Depends, status

from app.core.auth import require_admin, require_bearer_token
from app.dependencies import get_auth_service
from app.schemas.auth import AdminUser, AuthSession, LoginRequest
from app.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=AuthSession)
def login(
    payload: LoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Admin sign-in with email and password.

    Returns the Supabase access token to send as `Authorization: Bearer`.
    """
    return service.login(payload)


@router.get("/me", response_model=AdminUser)
def read_me(admin: AdminUser = Depends(require_admin)):
    """
    The signed-in admin (used by the panel to check its session).
    """
    return admin


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def logout(
    token: str = Depends(require_bearer_token),
    service: AuthService = Depends(get_auth_service),
):
    """
    Sign out: revokes the current session.
    """
    service.logout(token)
    return None
