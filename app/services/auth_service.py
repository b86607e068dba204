# app/services/auth_service.py
import logging
from typing import Callable

from fastapi import HTTPException, status
from supabase import Client

from app.schemas.auth import AuthSession, LoginRequest

logger = logging.getLogger(__name__)


class AuthService:
    """
    Email/password sign-in against Supabase Auth.

    - login: a fresh anon client per call (the session is stored on it)
    - logout: revokes the session through the admin API
    """

    def __init__(
        self,
        client_factory: Callable[[], Client],
        admin_client_factory: Callable[[], Client],
    ):
        self.client_factory = client_factory
        self.admin_client_factory = admin_client_factory

    def login(self, payload: LoginRequest) -> AuthSession:
        client = self.client_factory()
        try:
            resp = client.auth.sign_in_with_password(
                {"email": payload.email, "password": payload.password}
            )
        except Exception:
            logger.info("Sign-in failed for %s", payload.email)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
            )

        session = getattr(resp, "session", None)
        if session is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
            )

        user = getattr(resp, "user", None)
        return AuthSession(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            email=getattr(user, "email", None) or payload.email,
        )

    def logout(self, access_token: str) -> None:
        try:
            self.admin_client_factory().auth.admin.sign_out(access_token)
        except Exception:
            logger.exception("Sign-out failed")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Sign-out failed",
            )
