from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable

from orderdesk.config import DEFAULT_ORDERS_PER_PAGE
from orderdesk.core.access import OperatorContext
from orderdesk.core.conversations import ConversationStore
from orderdesk.core.db import OrderRepository
from orderdesk.core.normalize import ORDER_STATUSES, ConversationSummary, Message, Order

from .chat import ChatService

ALL_STATUSES = "all"


@dataclass(slots=True)
class OrderPage:
    number: int
    total_pages: int
    status: str
    orders: list[Order] = field(default_factory=list)

    @property
    def has_previous(self) -> bool:
        return self.number > 1

    @property
    def has_next(self) -> bool:
        return self.number < self.total_pages


class _LiveView:
    """Keeps the latest pushed snapshot; subclasses decide what to subscribe to."""

    def __init__(self, on_update: Callable[[], None] | None = None):
        self._on_update = on_update
        self._subscription = None

    def _updated(self) -> None:
        if self._on_update is not None:
            self._on_update()

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def __enter__(self):  # noqa: ANN204
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()


class OrderBoard(_LiveView):
    """Admin order list: status filter, per-status counts, newest first, paginated."""

    def __init__(
        self,
        repository: OrderRepository,
        per_page: int = DEFAULT_ORDERS_PER_PAGE,
        on_update: Callable[[], None] | None = None,
    ):
        super().__init__(on_update)
        if per_page <= 0:
            raise ValueError("per_page must be positive")
        self.per_page = per_page
        self.orders: list[Order] = []
        self._subscription = repository.subscribe_orders(self._receive)

    def _receive(self, orders: list[Order]) -> None:
        self.orders = list(orders)
        self._updated()

    def counts(self) -> dict[str, int]:
        counts = {ALL_STATUSES: len(self.orders)}
        for status in ORDER_STATUSES:
            counts[status] = 0
        for order in self.orders:
            counts[order.status] = counts.get(order.status, 0) + 1
        return counts

    def filtered(self, status: str = ALL_STATUSES) -> list[Order]:
        if status == ALL_STATUSES:
            return list(self.orders)
        return [order for order in self.orders if order.status == status]

    def page(self, number: int = 1, status: str = ALL_STATUSES) -> OrderPage:
        orders = self.filtered(status)
        total_pages = max(1, math.ceil(len(orders) / self.per_page))
        number = min(max(number, 1), total_pages)
        start = (number - 1) * self.per_page
        return OrderPage(
            number=number,
            total_pages=total_pages,
            status=status,
            orders=orders[start : start + self.per_page],
        )


class ConversationInbox(_LiveView):
    def __init__(self, store: ConversationStore, on_update: Callable[[], None] | None = None):
        super().__init__(on_update)
        self.summaries: list[ConversationSummary] = []
        self._subscription = store.subscribe_all(self._receive)

    def _receive(self, summaries: list[ConversationSummary]) -> None:
        self.summaries = list(summaries)
        self._updated()

    def search(self, query: str | None = None) -> list[ConversationSummary]:
        if not query or not query.strip():
            return list(self.summaries)
        needle = query.strip().lower()
        return [summary for summary in self.summaries if needle in (summary.owner_name or "").lower()]

    @property
    def total_unread(self) -> int:
        return sum(summary.unread_by_admin for summary in self.summaries)

    @property
    def new_orders(self) -> list[ConversationSummary]:
        return [summary for summary in self.summaries if summary.has_new_order]


class ConversationThread(_LiveView):
    """
    One customer's messages as seen by an operator.

    Opening the thread marks it read for the admin side. The read marker is the
    only write it issues, and it goes through ``ChatService``.
    """

    def __init__(
        self,
        store: ConversationStore,
        customer_id: str,
        chat: ChatService,
        operator: OperatorContext,
        on_update: Callable[[], None] | None = None,
    ):
        super().__init__(on_update)
        self.customer_id = customer_id
        self.messages: list[Message] = []
        self._subscription = store.subscribe(customer_id, self._receive)
        try:
            if store.get_summary(customer_id) is not None:
                chat.mark_read(customer_id, operator)
        except Exception:
            self.close()
            raise

    def _receive(self, messages: list[Message]) -> None:
        self.messages = list(messages)
        self._updated()

    @property
    def pending_orders(self) -> list[Message]:
        return [message for message in self.messages if message.order_related and not message.instructions_sent]
