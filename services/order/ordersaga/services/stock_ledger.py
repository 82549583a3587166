"""
Stock ledger: the relational source of truth for available quantities.

Reservations are a single conditional UPDATE (``available >= qty`` in the WHERE
clause), so two concurrent reservations for the last unit cannot both match a
row. No read-modify-write happens in Python.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ordersaga.db.models import Inventory, Product

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class StockRecord:
    product_id: int
    name: str
    unit_price: Decimal
    available: int

class StockLedgerError(Exception):
    """Raised when the ledger database cannot complete an operation."""

class StockLedger(ABC):

    @abstractmethod
    def get(self, product_id: int) -> Optional[StockRecord]:
        """Current record for the product, None if it does not exist."""

    @abstractmethod
    def reserve(self, product_id: int, qty: int) -> bool:
        """Atomically take ``qty`` units. False when stock is insufficient."""

    @abstractmethod
    def restore(self, product_id: int, qty: int) -> None:
        """Give ``qty`` units back. A no-op for unknown products."""

class SqlStockLedger(StockLedger):

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, product_id: int) -> Optional[StockRecord]:
        stmt = (
            select(Product.id, Product.name, Product.price, Inventory.available)
            .join(Inventory, Inventory.product_id == Product.id)
            .where(Product.id == product_id, Product.active.is_(True))
        )
        try:
            with self._session_factory() as db:
                row = db.execute(stmt).one_or_none()
        except SQLAlchemyError as e:
            raise StockLedgerError(f"Could not read stock for product {product_id}: {e}") from e
        if row is None:
            return None
        return StockRecord(
            product_id=row.id,
            name=row.name,
            unit_price=Decimal(row.price),
            available=row.available,
        )

    def reserve(self, product_id: int, qty: int) -> bool:
        if qty <= 0:
            raise ValueError(f"reserve qty must be positive, got {qty}")
        stmt = (
            update(Inventory)
            .where(Inventory.product_id == product_id, Inventory.available >= qty)
            .values(available=Inventory.available - qty, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        try:
            with self._session_factory() as db:
                res = db.execute(stmt)
                db.commit()
        except SQLAlchemyError as e:
            raise StockLedgerError(f"Could not reserve {qty} of product {product_id}: {e}") from e
        reserved = res.rowcount == 1
        logger.debug("reserve product=%s qty=%s -> %s", product_id, qty, reserved,
                     extra={"product_id": product_id, "quantity": qty})
        return reserved

    def restore(self, product_id: int, qty: int) -> None:
        if qty <= 0:
            return
        stmt = (
            update(Inventory)
            .where(Inventory.product_id == product_id)
            .values(available=Inventory.available + qty, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        try:
            with self._session_factory() as db:
                res = db.execute(stmt)
                db.commit()
        except SQLAlchemyError as e:
            raise StockLedgerError(f"Could not restore {qty} of product {product_id}: {e}") from e
        if res.rowcount == 0:
            logger.warning("restore skipped, no inventory row for product %s", product_id,
                           extra={"product_id": product_id, "quantity": qty})
        else:
            logger.debug("restored product=%s qty=%s", product_id, qty,
                         extra={"product_id": product_id, "quantity": qty})
