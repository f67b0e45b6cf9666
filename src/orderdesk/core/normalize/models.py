from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .timestamps import to_iso

STATUS_CONFIRMATION = "confirmation"
STATUS_SHIPPING = "shipping"
STATUS_RECEIVING = "receiving"
STATUS_COMPLETED = "completed"
STATUS_REVIEWS = "reviews"
STATUS_CANCELLED = "cancelled"

ORDER_STATUSES = (
    STATUS_CONFIRMATION,
    STATUS_SHIPPING,
    STATUS_RECEIVING,
    STATUS_COMPLETED,
    STATUS_REVIEWS,
    STATUS_CANCELLED,
)

SENDER_ADMIN = "admin"
SENDER_CUSTOMER = "customer"
SENDER_ROLES = (SENDER_ADMIN, SENDER_CUSTOMER)


@dataclass(slots=True)
class OrderItem:
    name: str
    quantity: int
    unit_price: float
    image_ref: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }
        if self.image_ref:
            payload["image_ref"] = self.image_ref
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> OrderItem:
        quantity = int(payload.get("quantity") or 0)
        if quantity <= 0:
            raise ValueError(f"Item quantity must be positive: {payload!r}")
        unit_price = float(payload.get("unit_price", payload.get("price")) or 0)
        if unit_price < 0:
            raise ValueError(f"Item price must be non-negative: {payload!r}")
        return cls(
            name=str(payload.get("name") or "Item"),
            quantity=quantity,
            unit_price=unit_price,
            image_ref=payload.get("image_ref") or payload.get("image"),
        )


@dataclass(slots=True)
class StatusEntry:
    status: str
    timestamp: datetime
    note: str
    requested_by: str | None = None


@dataclass(slots=True)
class Order:
    id: str
    customer_id: str
    status: str = STATUS_CONFIRMATION
    items: list[OrderItem] = field(default_factory=list)
    total_amount: float | None = None
    customer_email: str | None = None
    delivery_address: str | None = None
    payment_method: str | None = None
    order_date: datetime | None = None
    status_history: list[StatusEntry] = field(default_factory=list)

    def snapshot(self) -> dict[str, Any]:
        """Denormalised copy attached to order-related messages."""
        return {
            "order_id": self.id,
            "status": self.status,
            "items": [item.to_dict() for item in self.items],
            "total_amount": self.total_amount,
            "delivery_address": self.delivery_address,
            "payment_method": self.payment_method,
            "order_date": to_iso(self.order_date),
        }


@dataclass(slots=True)
class Message:
    id: str
    customer_id: str
    sender_role: str
    timestamp: datetime
    text: str | None = None
    image_ref: str | None = None
    read: bool = False
    order_related: bool = False
    order_snapshot: dict[str, Any] | None = None
    instructions_sent: bool = False


@dataclass(slots=True)
class ConversationSummary:
    customer_id: str
    owner_name: str | None = None
    last_message: str | None = None
    timestamp: datetime | None = None
    unread_by_admin: int = 0
    unread_by_user: int = 0
    has_new_order: bool = False
    pending_order_id: str | None = None


@dataclass(slots=True)
class Operator:
    id: str
    role: str
    email: str | None = None
    display_name: str | None = None
