from __future__ import annotations

import sqlite3
import uuid
from collections import defaultdict
from typing import Any, Callable

from orderdesk.core.errors import NotFound, StaleStatus
from orderdesk.core.normalize import (
    STATUS_CANCELLED,
    Order,
    OrderItem,
    StatusEntry,
    to_datetime,
    to_iso,
    utc_now,
)

from .base import SqliteRepository
from .changes import Subscription

ORDERS_TOPIC = "orders"


class OrderRepository(SqliteRepository):
    partition = "orders"

    def _load_history(self, order_ids: list[str]) -> dict[str, list[StatusEntry]]:
        history: dict[str, list[StatusEntry]] = defaultdict(list)
        if not order_ids:
            return history
        placeholders = ", ".join("?" for _ in order_ids)
        rows = self._fetchall(
            f"""
            SELECT order_id, status, timestamp, note, requested_by
            FROM order_status_history
            WHERE order_id IN ({placeholders})
            ORDER BY id ASC
            """,
            tuple(order_ids),
        )
        for row in rows:
            history[row["order_id"]].append(
                StatusEntry(
                    status=row["status"],
                    timestamp=to_datetime(row["timestamp"]),
                    note=row["note"] or "",
                    requested_by=row["requested_by"],
                )
            )
        return history

    def _row_to_order(self, row: sqlite3.Row, history: list[StatusEntry]) -> Order:
        items = [OrderItem.from_dict(payload) for payload in self._from_json(row["items_json"]) or []]
        return Order(
            id=row["id"],
            customer_id=row["customer_id"],
            status=row["status"],
            items=items,
            total_amount=row["total_amount"],
            customer_email=row["customer_email"],
            delivery_address=row["delivery_address"],
            payment_method=row["payment_method"],
            order_date=to_datetime(row["order_date"]) if row["order_date"] else None,
            status_history=history,
        )

    def insert_order(self, order: Order, note: str = "Order placed") -> str:
        """
        Write path of the checkout collaborator. Re-inserting an existing id is a
        no-op so imports can be replayed.
        """
        order_id = order.id or uuid.uuid4().hex
        placed_at = order.order_date or utc_now()
        with self._transaction() as connection:
            cursor = connection.execute(
                """
                INSERT INTO orders (
                    id, customer_id, customer_email, status, items_json, total_amount,
                    delivery_address, payment_method, order_date
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO NOTHING
                """,
                (
                    order_id,
                    order.customer_id,
                    order.customer_email,
                    order.status,
                    self._to_json([item.to_dict() for item in order.items]),
                    order.total_amount,
                    order.delivery_address,
                    order.payment_method,
                    to_iso(placed_at),
                ),
            )
            if cursor.rowcount:
                entries = order.status_history or [StatusEntry(order.status, placed_at, note)]
                connection.executemany(
                    """
                    INSERT INTO order_status_history (order_id, status, timestamp, note, requested_by)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    [
                        (order_id, entry.status, to_iso(entry.timestamp), entry.note, entry.requested_by)
                        for entry in entries
                    ],
                )
        self.changes.publish(ORDERS_TOPIC)
        return order_id

    def get_order(self, order_id: str) -> Order | None:
        row = self._fetchone("SELECT * FROM orders WHERE id = ?", (order_id,))
        if row is None:
            return None
        return self._row_to_order(row, self._load_history([order_id]).get(order_id, []))

    def require_order(self, order_id: str) -> Order:
        order = self.get_order(order_id)
        if order is None:
            raise NotFound("order", order_id)
        return order

    def list_orders(self, status: str | None = None) -> list[Order]:
        query = "SELECT * FROM orders"
        params: tuple[Any, ...] = ()
        if status:
            query += " WHERE status = ?"
            params = (status,)
        query += " ORDER BY COALESCE(order_date, created_at) DESC, id ASC"
        rows = self._fetchall(query, params)
        history = self._load_history([row["id"] for row in rows])
        return [self._row_to_order(row, history.get(row["id"], [])) for row in rows]

    def transition(self, order_id: str, expected_status: str, entry: StatusEntry) -> None:
        """
        Sets ``status`` and appends the history row in one transaction, only if the
        stored status still equals ``expected_status``.
        """
        action = "cancel" if entry.status == STATUS_CANCELLED else "advance"
        with self._transaction() as connection:
            cursor = connection.execute(
                """
                UPDATE orders
                SET status = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND status = ?
                """,
                (entry.status, order_id, expected_status),
            )
            if cursor.rowcount == 0:
                row = connection.execute("SELECT status FROM orders WHERE id = ?", (order_id,)).fetchone()
                if row is None:
                    raise NotFound("order", order_id)
                raise StaleStatus(order_id, expected_status, row["status"], action=action)
            connection.execute(
                """
                INSERT INTO order_status_history (order_id, status, timestamp, note, requested_by)
                VALUES (?, ?, ?, ?, ?)
                """,
                (order_id, entry.status, to_iso(entry.timestamp), entry.note, entry.requested_by),
            )
        self.changes.publish(ORDERS_TOPIC)

    def subscribe_orders(self, listener: Callable[[list[Order]], None]) -> Subscription:
        return self.changes.subscribe(ORDERS_TOPIC, self.list_orders, listener)

    def add_audit_log(
        self,
        actor_id: str | None,
        entity_type: str,
        entity_id: str,
        action: str,
        before_json: dict[str, Any] | None,
        after_json: dict[str, Any] | None,
    ) -> None:
        with self._transaction() as connection:
            connection.execute(
                """
                INSERT INTO audit_log (actor_id, entity_type, entity_id, action, before_json, after_json)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    actor_id,
                    entity_type,
                    entity_id,
                    action,
                    self._to_json(before_json),
                    self._to_json(after_json),
                ),
            )

    def fetch_export_rows(self) -> list[dict[str, Any]]:
        rows = self._fetchall(
            """
            SELECT
                o.id AS order_id,
                o.customer_id,
                o.customer_email,
                o.status,
                o.order_date,
                o.delivery_address,
                o.payment_method,
                o.total_amount,
                o.items_json,
                (
                    SELECT group_concat(h.status || '@' || h.timestamp, ' > ')
                    FROM (
                        SELECT status, timestamp FROM order_status_history
                        WHERE order_id = o.id ORDER BY id
                    ) h
                ) AS status_history
            FROM orders o
            ORDER BY COALESCE(o.order_date, o.created_at) DESC, o.id ASC
            """
        )
        export_rows: list[dict[str, Any]] = []
        for row in rows:
            base = {key: row[key] for key in row.keys() if key != "items_json"}
            items = self._from_json(row["items_json"]) or []
            if not items:
                export_rows.append({**base, "item_name": None, "quantity": None, "unit_price": None})
                continue
            for item in items:
                export_rows.append(
                    {
                        **base,
                        "item_name": item.get("name"),
                        "quantity": item.get("quantity"),
                        "unit_price": item.get("unit_price"),
                    }
                )
        return export_rows
