import asyncio
import os
import tempfile
from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from beanie import PydanticObjectId
from httpx import ASGITransport, AsyncClient

# Use test DB, offline generator and local storage
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGODB_DB_NAME", "icongen_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ.setdefault("IMAGE_GENERATOR", "mock")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("STORAGE_LOCAL_PATH", tempfile.mkdtemp(prefix="icongen-test-"))

from icongen.core.exceptions import InsufficientCreditsError  # noqa: E402
from icongen.storage.base import StorageBackend  # noqa: E402


class InMemoryLedger:
    """Ledger with the same debit/refund semantics as CreditLedger, kept in a dict."""

    def __init__(self, balances: dict | None = None) -> None:
        self.balances = dict(balances or {})
        self.debited: list[str] = []
        self.refunded: list[str] = []
        self.fail_refund = False

    async def debit(self, user_id, amount: int, request_id: str) -> int:
        await asyncio.sleep(0)
        # check and write with no await in between, like a single conditional update
        if self.balances.get(user_id, 0) < amount:
            raise InsufficientCreditsError()
        self.balances[user_id] -= amount
        self.debited.append(request_id)
        return self.balances[user_id]

    async def refund(self, user_id, amount: int, request_id: str) -> int:
        if self.fail_refund:
            raise RuntimeError("ledger unavailable")
        if request_id not in self.refunded:
            self.balances[user_id] = self.balances.get(user_id, 0) + amount
            self.refunded.append(request_id)
        return self.balances[user_id]


class InMemoryIconStore:
    def __init__(self) -> None:
        self.records: dict[str, SimpleNamespace] = {}

    async def create(self, user_id, prompt: str) -> SimpleNamespace:
        record = SimpleNamespace(id=PydanticObjectId(), user_id=user_id, prompt=prompt, status="pending", storage_key=None)
        self.records[str(record.id)] = record
        return record

    async def mark_stored(self, record, storage_key: str) -> None:
        record.status = "stored"
        record.storage_key = storage_key

    async def delete(self, record) -> None:
        self.records.pop(str(record.id), None)


class MemoryStorage(StorageBackend):
    provider = "memory"

    def __init__(self, failures: list[Exception] | None = None) -> None:
        self.objects: dict[str, dict] = {}
        self.failures = list(failures or [])
        self.put_calls = 0
        self.deleted: list[str] = []

    async def put(self, key, body, content_type=None, metadata=None) -> str:
        self.put_calls += 1
        if self.failures:
            raise self.failures.pop(0)
        self.objects[key] = {"body": body, "content_type": content_type, "metadata": metadata}
        return f"memory://{key}"

    async def get(self, key) -> bytes:
        if key not in self.objects:
            raise FileNotFoundError(key)
        return self.objects[key]["body"]

    async def delete(self, key) -> None:
        self.deleted.append(key)
        self.objects.pop(key, None)

    def url(self, key) -> str:
        return f"https://icon-bucket.s3.amazonaws.com/{key}"


@pytest.fixture
def user() -> SimpleNamespace:
    return SimpleNamespace(
        id=PydanticObjectId(),
        email="tester@example.com",
        name="Tester",
        picture=None,
        session_version=0,
    )


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def icon_store() -> InMemoryIconStore:
    return InMemoryIconStore()


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    from icongen.main import app
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def mongo():
    """Beanie on a real MongoDB; skips the test when none is reachable."""
    from icongen.db.init import create_client, init_db
    ping_client = create_client(os.environ["MONGODB_URI"], serverSelectionTimeoutMS=500)
    try:
        await ping_client.admin.command("ping")
    except Exception:
        pytest.skip("MongoDB not reachable")
    finally:
        ping_client.close()
    mongo_client = await init_db(serverSelectionTimeoutMS=2000)
    yield mongo_client
    await mongo_client.drop_database(os.environ["MONGODB_DB_NAME"])
    mongo_client.close()


@pytest.fixture
def storage_factory():
    """Build a MemoryStorage whose next put() calls raise the given errors."""
    return MemoryStorage
