# app/core/config.py
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)
      - CLOUDINARY_CLOUD_NAME / CLOUDINARY_UPLOAD_PRESET (unsigned preset)
      - WHATSAPP_PHONE (international format without "+", e.g. 91XXXXXXXXXX)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (admin client: product writes, sign-out)
      - DATABASE_URL (device storage for carts, defaults to local SQLite)
    """

    PROJECT_NAME: str = "Sarees & Dresses Storefront"
    API_V1_STR: str = "/api/v1"

    # Supabase: document store + auth
    SUPABASE_URL: str
    SUPABASE_KEY: str
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    PRODUCTS_TABLE: str = "products"

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Comma separated; empty => any signed-in account is an admin
    ADMIN_EMAILS: str = ""

    # Local key/value storage backing the carts
    DATABASE_URL: str = "sqlite:///./storefront.db"
    CART_STORAGE_KEY: str = "cart"

    # Cloudinary unsigned uploads
    CLOUDINARY_CLOUD_NAME: str
    CLOUDINARY_UPLOAD_PRESET: str
    CLOUDINARY_FOLDER: str = "sari-store"
    MAX_IMAGE_BYTES: int = 10 * 1024 * 1024

    # WhatsApp checkout
    WHATSAPP_PHONE: str

    # Catalog ordering: "latest" (createdAt desc) or "shuffle" (discovery)
    CATALOG_ORDER: Literal["latest", "shuffle"] = "latest"
    CATALOG_SHUFFLE: Literal["uniform", "comparator"] = "uniform"

    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def admin_emails(self) -> set[str]:
        return {e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()}

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def cloudinary_upload_url(self) -> str:
        return f"https://api.cloudinary.com/v1_1/{self.CLOUDINARY_CLOUD_NAME}/image/upload"


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
