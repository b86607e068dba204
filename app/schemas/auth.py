# app/schemas/auth.py
from pydantic import EmailStr
from sqlmodel import SQLModel, Field


class LoginRequest(SQLModel):
    email: EmailStr
    password: str = Field(min_length=1)


class AuthSession(SQLModel):
    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    email: str | None = None


class AdminUser(SQLModel):
    """
    Identity resolved from a verified Supabase access token.
    """

    id: str
    email: str
