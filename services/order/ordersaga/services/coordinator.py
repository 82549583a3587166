"""
Order coordinator: the create-order saga, status updates and cached reads.

The ledger and the document store share no transaction. Every reservation is
recorded as it is taken; when a later step fails the recorded reservations are
restored newest first before the failure is returned. Cache entries are written
or dropped inline and best-effort; push events and admin mail run detached
through the ``TaskLauncher``. Neither changes the outcome of a request.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from pydantic import TypeAdapter, ValidationError

from ordersaga.core.errors import AppError, Result
from ordersaga.schemas import Order, OrderItem, OrderStatus, can_transition
from ordersaga.services.cache import Cache, order_key, user_orders_key
from ordersaga.services.notifier import (
    NotificationDispatcher,
    order_created_email,
    order_created_event,
    status_updated_email,
    status_updated_event,
)
from ordersaga.services.stock_ledger import StockLedger, StockLedgerError
from ordersaga.services.tasks import TaskLauncher
from ordersaga.store.order_store import OrderStore, OrderStoreError

logger = logging.getLogger(__name__)

_order_list = TypeAdapter(List[Order])

@dataclass(frozen=True)
class Reservation:
    product_id: int
    quantity: int

class OrderCoordinator:

    def __init__(
        self,
        ledger: StockLedger,
        store: OrderStore,
        cache: Cache,
        notifier: NotificationDispatcher,
        tasks: TaskLauncher,
        cache_ttl: int = 300,
        admin_email: str = "",
        status_email_enabled: bool = True,
        enforce_transitions: bool = True,
    ):
        self.ledger = ledger
        self.store = store
        self.cache = cache
        self.notifier = notifier
        self.tasks = tasks
        self.cache_ttl = cache_ttl
        self.admin_email = admin_email
        self.status_email_enabled = status_email_enabled
        self.enforce_transitions = enforce_transitions

    # ---------- create ----------
    def create_order(self, user_id: str, lines: Sequence[Tuple[int, int]]) -> Result[Order]:
        """
        Reserve stock for every line in request order, then write the order.

        ``lines`` is a sequence of ``(product_id, quantity)``. On any failure
        after the first reservation the taken stock is given back before the
        error is returned, so a failed attempt leaves no order and no stock
        held.
        """
        logger.info("creating order for user %s with %d item(s)", user_id, len(lines),
                    extra={"user_id": user_id})

        if not lines:
            return self._reject(AppError.validation("Order must contain at least one item"))
        for product_id, qty in lines:
            if qty <= 0:
                return self._reject(AppError.validation(
                    f"Quantity must be greater than 0 for product {product_id}"))

        reserved: List[Reservation] = []
        items: List[OrderItem] = []
        for product_id, qty in lines:
            error, item = self._reserve_line(product_id, qty)
            if error is not None:
                self._compensate(reserved)
                return self._reject(error)
            reserved.append(Reservation(product_id, qty))
            items.append(item)

        draft = Order.new(user_id, items)
        try:
            order = self.store.create(draft)
        except OrderStoreError as e:
            logger.error("order persistence failed for user %s, releasing %d reservation(s): %s",
                         user_id, len(reserved), e, extra={"user_id": user_id})
            self._compensate(reserved)
            return Result.fail(AppError.internal("Could not save the order", str(e)))

        logger.info("order %s created for user %s, total %s", order.id, user_id, order.total,
                    extra={"order_id": order.id, "user_id": user_id})

        # cache is settled before returning; only notifications run detached
        self._cache_set(order_key(order.id), order.model_dump_json())
        self._cache_invalidate(user_orders_key(user_id))
        self.tasks.launch("publish-order-created", self.notifier.publish, order_created_event(order))
        if self.admin_email:
            self.tasks.launch("email-order-created", self.notifier.enqueue_email,
                              order_created_email(order, self.admin_email))
        return Result.ok(order)

    def _reserve_line(self, product_id: int, qty: int) -> Tuple[Optional[AppError], Optional[OrderItem]]:
        try:
            record = self.ledger.get(product_id)
        except StockLedgerError as e:
            logger.error("stock lookup failed for product %s: %s", product_id, e,
                         extra={"product_id": product_id})
            return AppError.internal("Could not read stock", str(e)), None
        if record is None:
            return AppError.not_found(f"Product with id {product_id} not found"), None
        if record.available < qty:
            return self._insufficient(record.name, product_id, record.available, qty), None

        try:
            ok = self.ledger.reserve(product_id, qty)
        except StockLedgerError as e:
            logger.error("stock reservation failed for product %s: %s", product_id, e,
                         extra={"product_id": product_id, "quantity": qty})
            return AppError.internal("Could not reserve stock", str(e)), None
        if not ok:
            # another order took the stock between the read and the update
            current = self._available(product_id)
            return self._insufficient(record.name, product_id, current, qty), None

        logger.debug("reserved %s x product %s", qty, product_id,
                     extra={"product_id": product_id, "quantity": qty})
        return None, OrderItem.snapshot(product_id, record.name, qty, record.unit_price)

    def _available(self, product_id: int) -> Optional[int]:
        try:
            record = self.ledger.get(product_id)
        except StockLedgerError:
            return None
        return record.available if record else None

    @staticmethod
    def _insufficient(name: str, product_id: int, available: Optional[int], requested: int) -> AppError:
        shown = "unknown" if available is None else available
        return AppError.business_rule(
            f"Insufficient stock for product {name}",
            f"product_id={product_id} available={shown} requested={requested}",
        )

    def _compensate(self, reserved: List[Reservation]) -> None:
        """Restore reservations newest first. A failed restore is logged and skipped."""
        for r in reversed(reserved):
            try:
                self.ledger.restore(r.product_id, r.quantity)
                logger.info("compensated %s x product %s", r.quantity, r.product_id,
                            extra={"product_id": r.product_id, "quantity": r.quantity})
            except Exception:
                logger.error("could not restore %s x product %s, stock needs reconciliation",
                             r.quantity, r.product_id, exc_info=True,
                             extra={"product_id": r.product_id, "quantity": r.quantity})

    # ---------- status ----------
    def update_status(self, order_id: str, raw_status: Optional[str]) -> Result[Order]:
        new_status = OrderStatus.parse(raw_status)
        if new_status is None:
            allowed = ", ".join(s.value for s in OrderStatus)
            return self._reject(AppError.validation(
                f"Invalid status {raw_status!r}", f"allowed values: {allowed}"))

        try:
            current = self.store.get_by_id(order_id)
        except OrderStoreError as e:
            logger.error("could not load order %s: %s", order_id, e, extra={"order_id": order_id})
            return Result.fail(AppError.internal("Could not load the order", str(e)))
        if current is None:
            return self._reject(AppError.not_found(f"Order with id {order_id} not found"))

        previous = current.status
        if self.enforce_transitions and not can_transition(previous, new_status):
            return self._reject(AppError.business_rule(
                f"Cannot change order status from {previous.value} to {new_status.value}"))

        changed = current.model_copy(update={"status": new_status, "updated_at": datetime.now(timezone.utc)})
        try:
            order = self.store.update(changed)
        except OrderStoreError as e:
            logger.error("could not update order %s: %s", order_id, e, extra={"order_id": order_id})
            return Result.fail(AppError.internal("Could not update the order", str(e)))

        logger.info("order %s status %s -> %s", order.id, previous.value, order.status.value,
                    extra={"order_id": order.id, "status": order.status.value})

        self._cache_invalidate(order_key(order.id))
        self._cache_invalidate(user_orders_key(order.user_id))
        self.tasks.launch("publish-status-updated", self.notifier.publish,
                          status_updated_event(order, previous))
        if self.status_email_enabled and self.admin_email:
            self.tasks.launch("email-status-updated", self.notifier.enqueue_email,
                              status_updated_email(order, previous, self.admin_email))
        return Result.ok(order)

    # ---------- reads ----------
    def find_by_id(self, order_id: str) -> Result[Order]:
        key = order_key(order_id)
        cached = self._cache_get(key)
        if cached is not None:
            try:
                order = Order.model_validate_json(cached)
                logger.debug("order %s served from cache", order_id, extra={"order_id": order_id})
                return Result.ok(order)
            except ValidationError:
                logger.warning("discarding undecodable cache entry %s", key, extra={"order_id": order_id})

        try:
            order = self.store.get_by_id(order_id)
        except OrderStoreError as e:
            logger.error("could not load order %s: %s", order_id, e, extra={"order_id": order_id})
            return Result.fail(AppError.internal("Could not load the order", str(e)))
        if order is None:
            return self._reject(AppError.not_found(f"Order with id {order_id} not found"))

        self._cache_set(key, order.model_dump_json())
        return Result.ok(order)

    def find_by_user(self, user_id: str) -> Result[List[Order]]:
        key = user_orders_key(user_id)
        cached = self._cache_get(key)
        if cached is not None:
            try:
                return Result.ok(_order_list.validate_json(cached))
            except ValidationError:
                logger.warning("discarding undecodable cache entry %s", key, extra={"user_id": user_id})

        try:
            orders = self.store.get_by_user(user_id)
        except OrderStoreError as e:
            logger.error("could not load orders of user %s: %s", user_id, e, extra={"user_id": user_id})
            return Result.fail(AppError.internal("Could not load orders", str(e)))

        self._cache_set(key, _order_list.dump_json(orders).decode("utf-8"))
        return Result.ok(orders)

    def find_all(self) -> Result[List[Order]]:
        try:
            return Result.ok(self.store.get_all())
        except OrderStoreError as e:
            logger.error("could not load orders: %s", e)
            return Result.fail(AppError.internal("Could not load orders", str(e)))

    # ---------- cache helpers ----------
    def _cache_invalidate(self, key: str) -> None:
        try:
            self.cache.invalidate(key)
        except Exception:
            logger.warning("cache invalidation failed for %s", key, exc_info=True)

    def _cache_get(self, key: str) -> Optional[str]:
        try:
            return self.cache.get(key)
        except Exception:
            logger.warning("cache read failed for %s, falling back to store", key, exc_info=True)
            return None

    def _cache_set(self, key: str, value: str) -> None:
        try:
            self.cache.set(key, value, self.cache_ttl)
        except Exception:
            logger.warning("cache write failed for %s", key, exc_info=True)

    @staticmethod
    def _reject(error: AppError) -> Result:
        logger.warning("request rejected: %s", error, extra={"error_kind": error.kind.value})
        return Result.fail(error)
