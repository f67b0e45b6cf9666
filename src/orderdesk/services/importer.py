from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from orderdesk.core.conversations import ConversationStore
from orderdesk.core.db import OrderRepository
from orderdesk.core.errors import OrderDeskError
from orderdesk.core.normalize import ORDER_STATUSES, STATUS_CONFIRMATION, Order, OrderItem, to_datetime


def order_from_payload(payload: dict[str, Any]) -> Order:
    customer_id = str(payload.get("customer_id") or payload.get("userId") or "").strip()
    if not customer_id:
        raise ValueError(f"Order has no customer_id: {payload.get('id')!r}")

    status = payload.get("status") or STATUS_CONFIRMATION
    if status not in ORDER_STATUSES:
        raise ValueError(f"Unknown order status: {status}")

    items = [OrderItem.from_dict(item) for item in payload.get("items") or []]
    total = payload.get("total_amount", payload.get("totalAmount"))
    if total is not None and float(total) < 0:
        raise ValueError(f"Order total must be non-negative: {total}")
    return Order(
        id=str(payload.get("id") or ""),
        customer_id=customer_id,
        status=status,
        items=items,
        total_amount=float(total) if total is not None else None,
        customer_email=payload.get("customer_email") or payload.get("userEmail"),
        delivery_address=payload.get("delivery_address") or payload.get("deliveryAddress"),
        payment_method=payload.get("payment_method") or payload.get("paymentMethod"),
        order_date=to_datetime(payload.get("order_date") or payload.get("orderDate")),
    )


class OrderImporter:
    """
    Checkout-side write path: stores placed orders and raises the new-order flag
    in the customer's conversation. Replaying a file skips orders already stored.
    """

    def __init__(
        self,
        orders: OrderRepository,
        conversations: ConversationStore,
        logger: logging.Logger | logging.LoggerAdapter,
    ):
        self.orders = orders
        self.conversations = conversations
        self.logger = logger

    def place(self, order: Order) -> bool:
        if order.id and self.orders.get_order(order.id) is not None:
            self.logger.info("Order %s already stored, skipped", order.id)
            return False
        order.id = self.orders.insert_order(order)
        self.conversations.record_order_placed(order)
        self.logger.info("Order %s placed for %s", order.id, order.customer_id)
        return True

    def import_file(self, path: Path) -> dict[str, int]:
        payload = json.loads(path.read_text(encoding="utf-8-sig"))
        records = payload if isinstance(payload, list) else payload.get("orders", [])

        stats = {"orders_total": len(records), "orders_placed": 0, "orders_skipped": 0, "errors": 0}
        for record in records:
            if not isinstance(record, dict):
                stats["errors"] += 1
                self.logger.error("Order import skipped a non-object record: %r", record)
                continue
            try:
                placed = self.place(order_from_payload(record))
            except (OrderDeskError, ValueError) as exc:
                stats["errors"] += 1
                self.logger.error("Order import failed for %s: %s", record.get("id"), exc)
                continue
            stats["orders_placed" if placed else "orders_skipped"] += 1
        return stats
