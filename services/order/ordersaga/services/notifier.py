"""
Order notifications: push events go to the order events topic, admin mail goes
through the email queue. Both are one-way; nothing here reports back to the
request that triggered it.
"""
import html
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable

from ordersaga.core.config import settings
from ordersaga.kafka import producer
from ordersaga.schemas import Order, OrderStatus
from ordersaga.services.email import EmailMessage, EmailQueue

ORDER_CREATED = "ORDER_CREATED"
ORDER_STATUS_UPDATED = "ORDER_STATUS_UPDATED"

class NotificationDispatcher(ABC):

    @abstractmethod
    def publish(self, event: dict) -> None: ...

    @abstractmethod
    def enqueue_email(self, message: EmailMessage) -> None: ...

class OrderNotifier(NotificationDispatcher):

    def __init__(self, emails: EmailQueue, topic: str = settings.TOPIC_ORDER_EVENTS,
                 send: Callable[[str, str, dict], None] = producer.send):
        self._emails = emails
        self._topic = topic
        self._send = send

    def publish(self, event: dict) -> None:
        self._send(self._topic, str(event.get("order_id", "")), event)

    def enqueue_email(self, message: EmailMessage) -> None:
        self._emails.enqueue(message)

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

def order_created_event(order: Order) -> dict:
    return {
        "type": ORDER_CREATED,
        "order_id": order.id,
        "user_id": order.user_id,
        "status": order.status.value,
        "total": str(order.total),
        "data": order.model_dump(mode="json"),
        "timestamp": _now(),
    }

def status_updated_event(order: Order, previous: OrderStatus) -> dict:
    return {
        "type": ORDER_STATUS_UPDATED,
        "order_id": order.id,
        "user_id": order.user_id,
        "previous_status": previous.value,
        "status": order.status.value,
        "data": order.model_dump(mode="json"),
        "timestamp": _now(),
    }

def order_created_email(order: Order, to: str) -> EmailMessage:
    rows = "".join(
        f"<li>{html.escape(it.product_name)} - Qty: {it.quantity} - "
        f"Price: ${it.unit_price:.2f} - Subtotal: ${it.subtotal:.2f}</li>"
        for it in order.items
    )
    body = (
        "<h2>New order received</h2>"
        f"<p><strong>Order:</strong> {order.id}</p>"
        f"<p><strong>User:</strong> {html.escape(order.user_id)}</p>"
        f"<p><strong>Status:</strong> {order.status.value}</p>"
        f"<p><strong>Total:</strong> ${order.total:.2f}</p>"
        f"<h3>Items</h3><ul>{rows}</ul>"
        f"<p><strong>Date:</strong> {_now()}</p>"
    )
    return EmailMessage(to=to, subject=f"New order #{order.id}", body=body)

def status_updated_email(order: Order, previous: OrderStatus, to: str) -> EmailMessage:
    body = (
        "<h2>Order status changed</h2>"
        f"<p><strong>Order:</strong> {order.id}</p>"
        f"<p><strong>User:</strong> {html.escape(order.user_id)}</p>"
        f"<p><strong>Previous status:</strong> {previous.value}</p>"
        f"<p><strong>New status:</strong> {order.status.value}</p>"
        f"<p><strong>Total:</strong> ${order.total:.2f}</p>"
        f"<p><strong>Updated:</strong> {_now()}</p>"
    )
    return EmailMessage(to=to, subject=f"Order #{order.id} - status {order.status.value}", body=body)
