# app/models/local_storage.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class LocalStorageEntry(SQLModel, table=True):
    """
    Key/value entry of the device storage.

    Same contract as browser localStorage: one string value per key.
    The cart is stored as a JSON array under a single key.
    """

    __tablename__ = "local_storage"

    key: str = Field(
        primary_key=True,
        max_length=255,
        description="Storage key, e.g. 'cart' or 'cart:<device-id>'",
    )

    value: str = Field(
        description="Serialized value (JSON text)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last write timestamp (UTC)",
    )
