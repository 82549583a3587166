from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, FrozenSet, List, Optional, Tuple
from datetime import datetime
from decimal import Decimal
from enum import Enum

class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["OrderStatus"]:
        """Case-insensitive lookup; None for unknown values."""
        if raw is None:
            return None
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return None

# DELIVERED and CANCELLED are end states
ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new == current or new in ALLOWED_TRANSITIONS[current]

class OrderItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: int
    product_name: str
    quantity: int = Field(gt=0)
    unit_price: Decimal
    subtotal: Decimal

    @classmethod
    def snapshot(cls, product_id: int, product_name: str, quantity: int, unit_price: Decimal) -> "OrderItem":
        return cls(
            product_id=product_id,
            product_name=product_name,
            quantity=quantity,
            unit_price=unit_price,
            subtotal=unit_price * quantity,
        )

class Order(BaseModel):
    """Read-only projection of an order document."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    user_id: str
    items: Tuple[OrderItem, ...]
    total: Decimal
    status: OrderStatus = OrderStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def new(cls, user_id: str, items: List[OrderItem]) -> "Order":
        return cls(
            user_id=user_id,
            items=tuple(items),
            total=sum((it.subtotal for it in items), Decimal("0")),
            status=OrderStatus.PENDING,
        )

# --- request bodies ---
class OrderLine(BaseModel):
    product_id: int
    quantity: int

class CreateOrder(BaseModel):
    items: List[OrderLine] = []

class UpdateStatus(BaseModel):
    status: str
