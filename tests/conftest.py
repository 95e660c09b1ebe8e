# tests/conftest.py
import os

# Keep the app's startup hook away from the on-disk database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from addons_app.database import Base, get_db, init_db
from addons_app.main import app
from storefront.cart import Cart, CartLine
from storefront.config import StorefrontSettings
from storefront.exceptions import CartError
from storefront.selections import SelectionStore
from storefront.storage import MemorySessionStorage

# In-memory SQLite shared across threads so the TestClient sees the same tables
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session() -> Session:
    """Clean database for each test."""
    init_db(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Storefront fixtures
# ---------------------------------------------------------------------------

class Clock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


class FakeCartClient:
    """Stands in for CartClient; keeps cart lines in memory and records calls."""

    def __init__(self, settings: StorefrontSettings, lines=None):
        self.settings = settings
        self.lines = list(lines or [])
        self.calls = []
        self.fail_on = set()
        self._listeners = []

    def add_listener(self, callback):
        self._listeners.append(callback)

    def _notify(self, kind):
        for callback in self._listeners:
            callback(kind)

    def _check(self, name):
        self.calls.append(name)
        if name in self.fail_on:
            raise CartError(f"{name} failed", status_code=500)

    def get_cart(self) -> Cart:
        self._check("get_cart")
        lines = [CartLine(**vars(line)) for line in self.lines]
        return Cart(lines=lines, total_price=sum((l.line_price for l in lines), 0))

    def add_line(self, variant_id, quantity, properties=None):
        self._check("add_line")
        self.last_add = {"variant_id": variant_id, "quantity": quantity, "properties": properties}
        self.lines.append(CartLine(
            key=f"{variant_id}:surrogate",
            variant_id=str(variant_id),
            product_id=self.settings.surrogate_product_id,
            quantity=quantity,
            unit_price=self.settings.surrogate_unit_price,
            sku=self.settings.surrogate_sku,
            properties=dict(properties or {}),
        ))
        self._notify("add")
        return {}

    def update_quantities(self, updates):
        self._check("update_quantities")
        self.last_updates = dict(updates)
        kept = []
        for line in self.lines:
            if line.key in updates:
                line.quantity = updates[line.key]
            if line.quantity > 0:
                kept.append(line)
        self.lines = kept
        self._notify("update")
        return self.get_cart()

    @property
    def mutations(self):
        return [c for c in self.calls if c != "get_cart"]


@pytest.fixture
def settings() -> StorefrontSettings:
    return StorefrontSettings(app_host="https://addons.example.com")


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def storage() -> MemorySessionStorage:
    return MemorySessionStorage()


@pytest.fixture
def store(storage, settings, clock) -> SelectionStore:
    return SelectionStore(storage, settings=settings, clock=clock)


@pytest.fixture
def cart_client(settings) -> FakeCartClient:
    return FakeCartClient(settings)
