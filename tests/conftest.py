# tests/conftest.py
import os

os.environ.update(
    {
        "SUPABASE_URL": "https://example.supabase.co",
        "SUPABASE_KEY": "anon-key",
        "SUPABASE_SERVICE_ROLE_KEY": "service-role-key",
        "SUPABASE_JWT_SECRET": "test-jwt-secret",
        "CLOUDINARY_CLOUD_NAME": "demo",
        "CLOUDINARY_UPLOAD_PRESET": "unsigned_test",
        "WHATSAPP_PHONE": "911234567890",
        "DATABASE_URL": "sqlite://",
        "ADMIN_EMAILS": "",
    }
)

import random  # noqa: E402
import re  # noqa: E402
import uuid  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from app.core.image_host import ImageHost  # noqa: E402
from app.database import get_session  # noqa: E402
from app.dependencies import (  # noqa: E402
    get_auth_service,
    get_catalog_service,
    get_product_service,
    get_upload_tracker,
)
from app.main import app  # noqa: E402
from app.models.local_storage import LocalStorageEntry  # noqa: E402,F401
from app.repositories.product_repo import ProductRepository  # noqa: E402
from app.repositories.storage_repo import LocalStorage  # noqa: E402
from app.services.auth_service import AuthService  # noqa: E402
from app.services.catalog_service import CatalogFeed, CatalogService  # noqa: E402
from app.services.product_service import ProductService, UploadTracker  # noqa: E402

JWT_SECRET = "test-jwt-secret"


# ---------------------------------------------------------------------------
# In-memory stand-in for the Supabase PostgREST query builder
# ---------------------------------------------------------------------------


class FakeQuery:
    def __init__(self, table: "FakeTable"):
        self.table = table
        self.action = "select"
        self.payload = None
        self.filters: list[tuple[str, object]] = []
        self.order_by: tuple[str, bool] | None = None
        self.row_limit: int | None = None

    def select(self, *_columns):
        self.action = "select"
        return self

    def insert(self, payload):
        self.action, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.action, self.payload = "update", payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    def _matches(self, row):
        return all(row.get(c) == v for c, v in self.filters)

    def execute(self):
        self.table.calls.append((self.action, self.order_by))
        if self.table.fail:
            raise RuntimeError("backend unavailable")

        if self.action == "insert":
            row = dict(self.payload)
            row["id"] = str(uuid.uuid4())
            row["createdAt"] = self.table.next_timestamp()
            self.table.rows.append(row)
            return SimpleNamespace(data=[dict(row)])

        matched = [r for r in self.table.rows if self._matches(r)]

        if self.action == "update":
            for r in matched:
                r.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in matched])

        if self.action == "delete":
            self.table.rows = [r for r in self.table.rows if not self._matches(r)]
            return SimpleNamespace(data=[dict(r) for r in matched])

        if self.order_by:
            column, desc = self.order_by
            matched.sort(key=lambda r: r.get(column) or "", reverse=desc)
        if self.row_limit is not None:
            matched = matched[: self.row_limit]
        return SimpleNamespace(data=[dict(r) for r in matched])


class FakeTable:
    def __init__(self):
        self.rows: list[dict] = []
        self.calls: list[tuple] = []
        self.fail = False
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def next_timestamp(self) -> str:
        self._clock += timedelta(minutes=1)
        return self._clock.isoformat()

    def seed(self, **fields) -> dict:
        row = {"id": fields.pop("id", str(uuid.uuid4())), "createdAt": self.next_timestamp()}
        row.update(fields)
        self.rows.append(row)
        return row


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, FakeTable] = {}

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.tables.setdefault(name, FakeTable()))


# ---------------------------------------------------------------------------
# Image host answering like Cloudinary
# ---------------------------------------------------------------------------


def cloudinary_handler(request: httpx.Request) -> httpx.Response:
    """
    Bodies carrying IMG:<name> get https://cdn.test/<name>.jpg back;
    IMG:broken answers 500.
    """
    match = re.search(rb"IMG:(\w+)", request.content)
    name = match.group(1).decode() if match else "unnamed"
    if name == "broken":
        return httpx.Response(500, json={"error": {"message": "boom"}})
    return httpx.Response(200, json={"secure_url": f"https://cdn.test/{name}.jpg"})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def products_table(supabase) -> FakeTable:
    supabase.table("products")
    return supabase.tables["products"]


@pytest.fixture
def repo(supabase) -> ProductRepository:
    return ProductRepository(supabase, table="products")


@pytest.fixture
def feed() -> CatalogFeed:
    return CatalogFeed()


@pytest.fixture
def catalog(repo, feed) -> CatalogService:
    return CatalogService(repo, feed, rng=random.Random(7))


@pytest.fixture
def upload_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def image_host(upload_requests) -> ImageHost:
    def handler(request: httpx.Request) -> httpx.Response:
        upload_requests.append(request)
        return cloudinary_handler(request)

    return ImageHost(
        upload_url="https://api.cloudinary.com/v1_1/demo/image/upload",
        upload_preset="unsigned_test",
        folder="sari-store",
        transport=httpx.MockTransport(handler),
        chunk_size=256,
    )


@pytest.fixture
def product_service(repo, image_host, catalog) -> ProductService:
    return ProductService(repo, image_host, catalog, max_image_bytes=1024 * 1024)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def storage(session) -> LocalStorage:
    return LocalStorage(session)


@pytest.fixture
def tracker() -> UploadTracker:
    return UploadTracker()


class FakeAuth:
    """supabase.auth / supabase.auth.admin with one valid password."""

    PASSWORD = "secret"

    def __init__(self):
        self.admin = self
        self.signed_out: list[str] = []

    def sign_in_with_password(self, credentials):
        if credentials["password"] != self.PASSWORD:
            raise RuntimeError("Invalid login credentials")
        return SimpleNamespace(
            session=SimpleNamespace(access_token="access-token", refresh_token="refresh-token"),
            user=SimpleNamespace(email=credentials["email"]),
        )

    def sign_out(self, jwt, scope="global"):
        self.signed_out.append(jwt)


@pytest.fixture
def fake_auth() -> FakeAuth:
    return FakeAuth()


@pytest.fixture
def auth_service(fake_auth) -> AuthService:
    client = SimpleNamespace(auth=fake_auth)
    return AuthService(lambda: client, lambda: client)


@pytest.fixture
def client(engine, catalog, product_service, tracker, auth_service):
    def override_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_catalog_service] = lambda: catalog
    app.dependency_overrides[get_product_service] = lambda: product_service
    app.dependency_overrides[get_upload_tracker] = lambda: tracker
    app.dependency_overrides[get_auth_service] = lambda: auth_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_token(email: str = "admin@example.com", sub: str = "admin-1", **claims) -> str:
    payload = {
        "sub": sub,
        "email": email,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        **claims,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}
