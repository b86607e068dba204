# app/repositories/storage_repo.py
from datetime import datetime, timezone

from sqlmodel import Session

from app.models.local_storage import LocalStorageEntry


class LocalStorage:
    """
    localStorage-style key/value access over the local_storage table.

    - get_item / set_item / remove_item, string values only.
    - Every write commits immediately.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_item(self, key: str) -> str | None:
        entry = self.session.get(LocalStorageEntry, key)
        return entry.value if entry else None

    def set_item(self, key: str, value: str) -> None:
        entry = self.session.get(LocalStorageEntry, key)
        if entry is None:
            entry = LocalStorageEntry(key=key, value=value)
        else:
            entry.value = value
            entry.updated_at = datetime.now(timezone.utc)
        self.session.add(entry)
        self.session.commit()

    def remove_item(self, key: str) -> None:
        entry = self.session.get(LocalStorageEntry, key)
        if entry is not None:
            self.session.delete(entry)
            self.session.commit()
