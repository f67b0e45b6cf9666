from __future__ import annotations

import sqlite3
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from orderdesk.core.db.base import SqliteRepository
from orderdesk.core.db.changes import Subscription
from orderdesk.core.errors import NotFound
from orderdesk.core.normalize import (
    SENDER_ADMIN,
    SENDER_CUSTOMER,
    SENDER_ROLES,
    ConversationSummary,
    Message,
    Order,
    to_datetime,
    to_iso,
    to_millis,
    utc_now,
)

CONVERSATIONS_TOPIC = "conversations"
DEFAULT_OWNER_NAME = "Customer"
NEW_ORDER_PREVIEW = "🛒 New order placed"

COUNTER_FIELDS = ("unread_by_admin", "unread_by_user")
SUMMARY_FIELDS = (
    "owner_name",
    "last_message",
    "timestamp",
    "unread_by_admin",
    "unread_by_user",
    "has_new_order",
    "pending_order_id",
)


def messages_topic(customer_id: str) -> str:
    return f"messages:{customer_id}"


@dataclass(frozen=True, slots=True)
class Increment:
    """Relative counter change applied by the store itself."""

    amount: int = 1


def owner_name_for(order: Order | None) -> str:
    if order is not None and order.customer_email:
        local_part = order.customer_email.split("@", 1)[0].strip()
        if local_part:
            return local_part
    return DEFAULT_OWNER_NAME


class ConversationStore(SqliteRepository):
    """
    Per-customer conversations: an append-only message log and one summary row.

    Summary writes go through a single ``INSERT ... ON CONFLICT DO UPDATE`` so a
    missing conversation is created and an existing one merged in the same
    statement. Unread counters only move through ``Increment`` (``col = col + n``)
    or absolute resets, never through a value computed by the caller.
    """

    partition = "conversations"

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        snapshot = row["order_snapshot_json"]
        return Message(
            id=row["id"],
            customer_id=row["customer_id"],
            sender_role=row["sender_role"],
            timestamp=to_datetime(row["timestamp"]),
            text=row["text"],
            image_ref=row["image_ref"],
            read=bool(row["read"]),
            order_related=bool(row["order_related"]),
            order_snapshot=SqliteRepository._from_json(snapshot),
            instructions_sent=bool(row["instructions_sent"]),
        )

    @staticmethod
    def _row_to_summary(row: sqlite3.Row) -> ConversationSummary:
        return ConversationSummary(
            customer_id=row["customer_id"],
            owner_name=row["owner_name"],
            last_message=row["last_message"],
            timestamp=to_datetime(row["timestamp"]) if row["timestamp"] else None,
            unread_by_admin=int(row["unread_by_admin"]),
            unread_by_user=int(row["unread_by_user"]),
            has_new_order=bool(row["has_new_order"]),
            pending_order_id=row["pending_order_id"],
        )

    @staticmethod
    def _prepare_message(customer_id: str, message: Message) -> Message:
        if message.sender_role not in SENDER_ROLES:
            raise ValueError(f"Unknown sender role: {message.sender_role}")
        text = message.text if message.text and message.text.strip() else None
        if text is None and not message.image_ref:
            raise ValueError("A message needs text or an image")

        message.id = message.id or uuid.uuid4().hex
        message.customer_id = customer_id
        message.text = text
        return message

    def _insert_message(self, connection: sqlite3.Connection, message: Message) -> None:
        connection.execute(
            """
            INSERT INTO messages (
                id, customer_id, sender_role, text, image_ref, timestamp,
                read, order_related, order_snapshot_json, instructions_sent
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.customer_id,
                message.sender_role,
                message.text,
                message.image_ref,
                to_iso(message.timestamp),
                int(message.read),
                int(message.order_related),
                self._to_json(message.order_snapshot),
                int(message.instructions_sent),
            ),
        )

    @staticmethod
    def _summary_upsert(
        customer_id: str,
        patch: dict[str, Any],
        defaults: dict[str, Any] | None,
    ) -> tuple[str, tuple[Any, ...]]:
        unknown = set(patch) - set(SUMMARY_FIELDS)
        if unknown:
            raise ValueError(f"Unknown conversation fields: {sorted(unknown)}")

        # Values for a brand-new row: safe defaults, then creation defaults, then the patch.
        insert_values: dict[str, Any] = {
            "owner_name": DEFAULT_OWNER_NAME,
            "last_message": None,
            "timestamp": None,
            "unread_by_admin": 0,
            "unread_by_user": 0,
            "has_new_order": False,
            "pending_order_id": None,
        }
        insert_values.update(defaults or {})

        assignments: list[str] = []
        update_params: list[Any] = []
        for field_name, value in patch.items():
            if isinstance(value, Increment):
                if field_name not in COUNTER_FIELDS:
                    raise ValueError(f"Only counters can be incremented, got {field_name}")
                insert_values[field_name] = max(int(insert_values[field_name]) + value.amount, 0)
                assignments.append(f"{field_name} = MAX(conversations.{field_name} + ?, 0)")
                update_params.append(value.amount)
            else:
                insert_values[field_name] = value
                assignments.append(f"{field_name} = excluded.{field_name}")
        assignments.append("updated_at = CURRENT_TIMESTAMP")

        insert_params = [
            customer_id,
            insert_values["owner_name"],
            insert_values["last_message"],
            to_iso(insert_values["timestamp"]),
            int(insert_values["unread_by_admin"]),
            int(insert_values["unread_by_user"]),
            int(bool(insert_values["has_new_order"])),
            insert_values["pending_order_id"],
        ]
        query = f"""
            INSERT INTO conversations (
                customer_id, owner_name, last_message, timestamp,
                unread_by_admin, unread_by_user, has_new_order, pending_order_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(customer_id) DO UPDATE SET
                {", ".join(assignments)}
            """
        return query, (*insert_params, *update_params)

    def _write_summary(self, connection: sqlite3.Connection, query: str, params: tuple[Any, ...]) -> None:
        connection.execute(query, params)

    def append(self, customer_id: str, message: Message) -> Message:
        message = self._prepare_message(customer_id, message)
        with self._transaction() as connection:
            self._insert_message(connection, message)
        self.changes.publish(messages_topic(customer_id))
        return message

    def upsert_summary(
        self,
        customer_id: str,
        patch: dict[str, Any],
        defaults: dict[str, Any] | None = None,
    ) -> ConversationSummary:
        query, params = self._summary_upsert(customer_id, patch, defaults)
        with self._transaction() as connection:
            self._write_summary(connection, query, params)
        self.changes.publish(CONVERSATIONS_TOPIC)
        return self.require_summary(customer_id)

    def append_with_summary(
        self,
        customer_id: str,
        message: Message,
        patch: dict[str, Any],
        defaults: dict[str, Any] | None = None,
    ) -> tuple[Message, ConversationSummary]:
        """Appends ``message`` and merges ``patch`` into the summary; both commit or neither does."""
        message = self._prepare_message(customer_id, message)
        query, params = self._summary_upsert(customer_id, patch, defaults)
        with self._transaction() as connection:
            self._insert_message(connection, message)
            self._write_summary(connection, query, params)
        self.changes.publish(messages_topic(customer_id), CONVERSATIONS_TOPIC)
        return message, self.require_summary(customer_id)

    def get_summary(self, customer_id: str) -> ConversationSummary | None:
        row = self._fetchone("SELECT * FROM conversations WHERE customer_id = ?", (customer_id,))
        return self._row_to_summary(row) if row else None

    def require_summary(self, customer_id: str) -> ConversationSummary:
        summary = self.get_summary(customer_id)
        if summary is None:
            raise NotFound("conversation", customer_id)
        return summary

    def list_summaries(self) -> list[ConversationSummary]:
        summaries = [self._row_to_summary(row) for row in self._fetchall("SELECT * FROM conversations")]
        summaries.sort(key=lambda summary: to_millis(summary.timestamp), reverse=True)
        return summaries

    def list_messages(self, customer_id: str) -> list[Message]:
        rows = self._fetchall(
            "SELECT * FROM messages WHERE customer_id = ? ORDER BY seq ASC",
            (customer_id,),
        )
        indexed = [(to_millis(row["timestamp"]), row["seq"], self._row_to_message(row)) for row in rows]
        indexed.sort(key=lambda entry: (entry[0], entry[1]))
        return [message for _, _, message in indexed]

    def get_message(self, customer_id: str, message_id: str) -> Message | None:
        row = self._fetchone(
            "SELECT * FROM messages WHERE customer_id = ? AND id = ?",
            (customer_id, message_id),
        )
        return self._row_to_message(row) if row else None

    def mark_read(self, customer_id: str, as_role: str) -> ConversationSummary:
        """Zeroes ``as_role``'s unread counter and flags the other side's messages as read."""
        if as_role not in SENDER_ROLES:
            raise ValueError(f"Unknown role: {as_role}")
        counter = "unread_by_admin" if as_role == SENDER_ADMIN else "unread_by_user"
        sender = SENDER_CUSTOMER if as_role == SENDER_ADMIN else SENDER_ADMIN
        with self._transaction() as connection:
            cursor = connection.execute(
                f"""
                UPDATE conversations
                SET {counter} = 0, updated_at = CURRENT_TIMESTAMP
                WHERE customer_id = ?
                """,
                (customer_id,),
            )
            if cursor.rowcount == 0:
                raise NotFound("conversation", customer_id)
            connection.execute(
                "UPDATE messages SET read = 1 WHERE customer_id = ? AND sender_role = ? AND read = 0",
                (customer_id, sender),
            )
        self.changes.publish(CONVERSATIONS_TOPIC, messages_topic(customer_id))
        return self.require_summary(customer_id)

    def clear_new_order_flag(self, customer_id: str) -> ConversationSummary:
        with self._transaction() as connection:
            cursor = connection.execute(
                """
                UPDATE conversations
                SET has_new_order = 0, pending_order_id = NULL, updated_at = CURRENT_TIMESTAMP
                WHERE customer_id = ?
                """,
                (customer_id,),
            )
            if cursor.rowcount == 0:
                raise NotFound("conversation", customer_id)
        self.changes.publish(CONVERSATIONS_TOPIC)
        return self.require_summary(customer_id)

    def mark_order_processed(self, customer_id: str, message_id: str) -> Message:
        with self._transaction() as connection:
            cursor = connection.execute(
                "UPDATE messages SET instructions_sent = 1 WHERE customer_id = ? AND id = ?",
                (customer_id, message_id),
            )
            if cursor.rowcount == 0:
                raise NotFound("message", message_id)
        self.changes.publish(messages_topic(customer_id))
        message = self.get_message(customer_id, message_id)
        if message is None:
            raise NotFound("message", message_id)
        return message

    def record_order_placed(self, order: Order) -> Message:
        """Order-placement path: customer-side order card plus the new-order flag."""
        now = utc_now()
        message, _ = self.append_with_summary(
            order.customer_id,
            Message(
                id="",
                customer_id=order.customer_id,
                sender_role=SENDER_CUSTOMER,
                timestamp=now,
                text=NEW_ORDER_PREVIEW,
                order_related=True,
                order_snapshot=order.snapshot(),
            ),
            {
                "last_message": NEW_ORDER_PREVIEW,
                "timestamp": now,
                "unread_by_admin": Increment(1),
                "has_new_order": True,
                "pending_order_id": order.id,
            },
            defaults={"owner_name": owner_name_for(order)},
        )
        return message

    def subscribe(self, customer_id: str, on_change: Callable[[list[Message]], None]) -> Subscription:
        return self.changes.subscribe(
            messages_topic(customer_id),
            lambda: self.list_messages(customer_id),
            on_change,
        )

    def subscribe_all(self, on_change: Callable[[list[ConversationSummary]], None]) -> Subscription:
        return self.changes.subscribe(CONVERSATIONS_TOPIC, self.list_summaries, on_change)
