"""
Order document store.

Each order is one row holding a JSON document (items + total) next to the few
fields that are queried on: owner, status and timestamps. Ids are assigned
here, never by the caller.
"""
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import DateTime, JSON, String, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, Session, mapped_column

from ordersaga.schemas import Order
from ordersaga.store.session import DocumentBase

logger = logging.getLogger(__name__)

class OrderDocument(DocumentBase):
    __tablename__ = "order_documents"
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    status: Mapped[str] = mapped_column(String(32), index=True)
    document: Mapped[Dict[str, Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

class OrderStoreError(Exception):
    """Raised when the document store cannot complete an operation."""

class OrderStore(ABC):

    @abstractmethod
    def create(self, order: Order) -> Order: ...

    @abstractmethod
    def get_by_id(self, order_id: str) -> Optional[Order]: ...

    @abstractmethod
    def get_by_user(self, user_id: str) -> List[Order]: ...

    @abstractmethod
    def get_all(self) -> List[Order]: ...

    @abstractmethod
    def update(self, order: Order) -> Order: ...

def _body(order: Order) -> Dict[str, Any]:
    return {
        "items": [it.model_dump(mode="json") for it in order.items],
        "total": str(order.total),
    }

def _to_order(row: OrderDocument) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        items=row.document["items"],
        total=row.document["total"],
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

class SqlOrderStore(OrderStore):

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory
        self._ready = False
        self._lock = threading.Lock()

    def ensure_collection(self) -> None:
        """Create the documents table on first use."""
        if self._ready:
            return
        with self._lock:
            if self._ready:
                return
            try:
                with self._session_factory() as db:
                    DocumentBase.metadata.create_all(bind=db.get_bind())
            except SQLAlchemyError as e:
                raise OrderStoreError(f"Could not prepare order collection: {e}") from e
            self._ready = True

    def create(self, order: Order) -> Order:
        self.ensure_collection()
        now = datetime.now(timezone.utc)
        row = OrderDocument(
            id=uuid.uuid4().hex,
            user_id=order.user_id,
            status=order.status.value,
            document=_body(order),
            created_at=now,
            updated_at=now,
        )
        try:
            with self._session_factory() as db:
                db.add(row); db.commit(); db.refresh(row)
                saved = _to_order(row)
        except SQLAlchemyError as e:
            raise OrderStoreError(f"Could not create order for user {order.user_id}: {e}") from e
        logger.debug("order document %s written", saved.id, extra={"order_id": saved.id})
        return saved

    def get_by_id(self, order_id: str) -> Optional[Order]:
        self.ensure_collection()
        try:
            with self._session_factory() as db:
                row = db.get(OrderDocument, order_id)
                return _to_order(row) if row else None
        except SQLAlchemyError as e:
            raise OrderStoreError(f"Could not read order {order_id}: {e}") from e

    def get_by_user(self, user_id: str) -> List[Order]:
        stmt = (
            select(OrderDocument)
            .where(OrderDocument.user_id == user_id)
            .order_by(OrderDocument.created_at.desc())
        )
        return self._query(stmt, f"orders of user {user_id}")

    def get_all(self) -> List[Order]:
        return self._query(select(OrderDocument).order_by(OrderDocument.created_at.desc()), "all orders")

    def update(self, order: Order) -> Order:
        self.ensure_collection()
        try:
            with self._session_factory() as db:
                row = db.get(OrderDocument, order.id)
                if row is None:
                    raise OrderStoreError(f"Order {order.id} does not exist")
                row.status = order.status.value
                row.document = _body(order)
                row.updated_at = order.updated_at or datetime.now(timezone.utc)
                db.commit(); db.refresh(row)
                return _to_order(row)
        except SQLAlchemyError as e:
            raise OrderStoreError(f"Could not update order {order.id}: {e}") from e

    def _query(self, stmt, what: str) -> List[Order]:
        self.ensure_collection()
        try:
            with self._session_factory() as db:
                return [_to_order(r) for r in db.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            raise OrderStoreError(f"Could not read {what}: {e}") from e
