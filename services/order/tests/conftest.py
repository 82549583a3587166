"""
Shared fixtures for the order service tests.

Both stores run on SQLite files under the test's tmp dir, the cache is the
in-process ``MemoryCache`` and notifications are recorded in memory.
"""
import os
import tempfile

# settings are read at import time, so point them away from postgres/redis first
_TMP = tempfile.mkdtemp(prefix="ordersaga-tests-")
os.environ["POSTGRES_DSN"] = f"sqlite:///{_TMP}/ledger.db"
os.environ["ORDER_STORE_DSN"] = f"sqlite:///{_TMP}/orders.db"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["ADMIN_EMAIL"] = "admin@example.local"

from decimal import Decimal
from typing import List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ordersaga.db.models import Inventory, Product
from ordersaga.db.session import Base
from ordersaga.services.cache import MemoryCache
from ordersaga.services.coordinator import OrderCoordinator
from ordersaga.services.email import EmailMessage
from ordersaga.services.notifier import NotificationDispatcher
from ordersaga.services.stock_ledger import SqlStockLedger
from ordersaga.services.tasks import TaskLauncher
from ordersaga.store.order_store import SqlOrderStore

ADMIN_EMAIL = "admin@example.local"

class RecordingNotifier(NotificationDispatcher):
    """Keeps every event and email instead of sending them."""

    def __init__(self):
        self.events: List[dict] = []
        self.emails: List[EmailMessage] = []

    def publish(self, event: dict) -> None:
        self.events.append(event)

    def enqueue_email(self, message: EmailMessage) -> None:
        self.emails.append(message)

def _sqlite_sessions(path):
    engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})
    return engine, sessionmaker(bind=engine, autoflush=False, autocommit=False)

@pytest.fixture
def ledger_sessions(tmp_path):
    engine, factory = _sqlite_sessions(tmp_path / "ledger.db")
    Base.metadata.create_all(engine)
    yield factory
    engine.dispose()

@pytest.fixture
def store_sessions(tmp_path):
    engine, factory = _sqlite_sessions(tmp_path / "orders.db")
    yield factory
    engine.dispose()

@pytest.fixture
def add_product(ledger_sessions):
    def _add(product_id: int, name: str, price: str, available: int, active: bool = True):
        with ledger_sessions() as db:
            db.add(Product(id=product_id, name=name, price=Decimal(price), active=active))
            db.add(Inventory(product_id=product_id, available=available))
            db.commit()
    return _add

@pytest.fixture
def stock_of(ledger_sessions):
    def _stock(product_id: int) -> int:
        with ledger_sessions() as db:
            return db.get(Inventory, product_id).available
    return _stock

@pytest.fixture
def ledger(ledger_sessions):
    return SqlStockLedger(ledger_sessions)

@pytest.fixture
def store(store_sessions):
    return SqlOrderStore(store_sessions)

@pytest.fixture
def cache():
    return MemoryCache()

@pytest.fixture
def notifier():
    return RecordingNotifier()

@pytest.fixture
def tasks():
    launcher = TaskLauncher()
    yield launcher
    launcher.wait(timeout=5)

@pytest.fixture
def make_coordinator(ledger, store, cache, notifier, tasks):
    def _make(**overrides) -> OrderCoordinator:
        kwargs = dict(
            ledger=ledger,
            store=store,
            cache=cache,
            notifier=notifier,
            tasks=tasks,
            cache_ttl=300,
            admin_email=ADMIN_EMAIL,
        )
        kwargs.update(overrides)
        return OrderCoordinator(**kwargs)
    return _make

@pytest.fixture
def coordinator(make_coordinator):
    return make_coordinator()
