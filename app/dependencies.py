# app/dependencies.py
from functools import lru_cache

from fastapi import Depends, Header
from sqlmodel import Session

from app.core.config import get_settings
from app.core.image_host import ImageHost
from app.core.supabase_client import supabase_admin, supabase_auth_client, supabase_public
from app.database import get_session
from app.repositories.product_repo import ProductRepository
from app.repositories.storage_repo import LocalStorage
from app.services.auth_service import AuthService
from app.services.cart_service import CartStore
from app.services.catalog_service import CatalogFeed, CatalogService
from app.services.product_service import ProductService, UploadTracker

# Process-wide singletons, built lazily so importing the app does not
# open any network client.


@lru_cache
def get_catalog_feed() -> CatalogFeed:
    return CatalogFeed()


@lru_cache
def get_upload_tracker() -> UploadTracker:
    return UploadTracker()


@lru_cache
def get_catalog_service() -> CatalogService:
    settings = get_settings()
    repo = ProductRepository(supabase_public(), table=settings.PRODUCTS_TABLE)
    return CatalogService(
        repo,
        get_catalog_feed(),
        default_order=settings.CATALOG_ORDER,
        shuffle_mode=settings.CATALOG_SHUFFLE,
    )


@lru_cache
def get_image_host() -> ImageHost:
    settings = get_settings()
    return ImageHost(
        upload_url=settings.cloudinary_upload_url,
        upload_preset=settings.CLOUDINARY_UPLOAD_PRESET,
        folder=settings.CLOUDINARY_FOLDER,
    )


@lru_cache
def get_product_service() -> ProductService:
    settings = get_settings()
    repo = ProductRepository(supabase_admin(), table=settings.PRODUCTS_TABLE)
    return ProductService(
        repo,
        get_image_host(),
        get_catalog_service(),
        max_image_bytes=settings.MAX_IMAGE_BYTES,
    )


@lru_cache
def get_auth_service() -> AuthService:
    return AuthService(supabase_auth_client, supabase_admin)


# Keeps "cart:<id>" inside the 255-char storage key
MAX_DEVICE_ID_LENGTH = 128


def get_cart_store(
    session: Session = Depends(get_session),
    device_id: str | None = Header(
        default=None,
        alias="X-Device-Id",
        max_length=MAX_DEVICE_ID_LENGTH,
    ),
) -> CartStore:
    """
    Cart of the calling device, rehydrated from storage for this request.

    Without X-Device-Id the fixed "cart" key is used. Longer ids than
    MAX_DEVICE_ID_LENGTH are rejected with 422.
    """
    key = get_settings().CART_STORAGE_KEY
    if device_id and device_id.strip():
        key = f"{key}:{device_id.strip()}"
    return CartStore(LocalStorage(session), key=key)
