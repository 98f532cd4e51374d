"""
Shared fixtures: an on-disk SQLite catalog, a fake storage API and JWT helpers.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import jwt
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from hardware_catalog.core import kafka
from hardware_catalog.core.config import settings
from hardware_catalog.core.redis import get_redis
from hardware_catalog.core.storage import StorageGateway, get_storage
from hardware_catalog.db import Base
from hardware_catalog.db_depends import get_db, get_session_factory
from hardware_catalog.main import app
from hardware_catalog.models.category import Category
from hardware_catalog.models.product import Product

STORAGE_URL = "http://storage.test"
BUCKET = "product-images"


class FakeStorageAPI:
    """In-memory stand-in for the storage REST API, mounted via httpx.MockTransport."""

    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.failing: set[str] = set()
        self.failing_content: set[bytes] = set()
        self.requests: list[tuple[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        prefix = f"/storage/v1/object/{BUCKET}/"
        name = request.url.path[len(prefix):]
        self.requests.append((request.method, name))

        if name in self.failing:
            return httpx.Response(500, json={"statusCode": "500", "error": "internal"})

        if request.method == "POST":
            if request.content in self.failing_content:
                return httpx.Response(500, json={"statusCode": "500", "error": "internal"})
            self.blobs[name] = request.content
            return httpx.Response(200, json={"Key": f"{BUCKET}/{name}"})

        if request.method == "DELETE":
            if name not in self.blobs:
                return httpx.Response(
                    400,
                    json={"statusCode": "404", "error": "not_found", "message": "Object not found"},
                )
            del self.blobs[name]
            return httpx.Response(200, json={"message": "Successfully deleted"})

        return httpx.Response(405)


class FakeRedis:
    def __init__(self):
        self.data: dict[str, str] = {}
        self.gets = 0

    async def get(self, key):
        self.gets += 1
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value

    async def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0


def make_token(*permissions: str, expires_in: timedelta = timedelta(minutes=15)) -> str:
    payload = {
        "sub": "store-admin",
        "id": 1,
        "role_id": 1,
        "role_name": "admin",
        "permissions": list(permissions),
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def auth_headers(*permissions: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(*permissions)}"}


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}", poolclass=NullPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage_api():
    return FakeStorageAPI()


@pytest.fixture
async def storage(storage_api):
    client = httpx.AsyncClient(base_url=STORAGE_URL, transport=httpx.MockTransport(storage_api))
    yield StorageGateway(client, STORAGE_URL, BUCKET)
    await client.aclose()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def events(monkeypatch):
    published: list[dict] = []

    async def _record(event: dict, topic: str | None = None):
        published.append(event)

    monkeypatch.setattr(kafka, "send_kafka_event", _record)
    return published


@pytest.fixture
async def category(db):
    cat = Category(name="Power Tools")
    db.add(cat)
    await db.commit()
    return cat


@pytest.fixture
async def other_category(db):
    cat = Category(name="Fasteners")
    db.add(cat)
    await db.commit()
    return cat


@pytest.fixture
def add_product(db):
    async def _add(name: str, category: Category, price: str = "1500.00", images: list[str] | None = None):
        product = Product(name=name, category_id=category.id, price=Decimal(price), images=images or [])
        db.add(product)
        await db.commit()
        return product

    return _add


@pytest.fixture
async def client(session_factory, storage):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_redis] = lambda: None

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
