from __future__ import annotations

from datetime import datetime
from typing import Callable

from orderdesk.core.access import OperatorContext
from orderdesk.core.db.orders import OrderRepository
from orderdesk.core.errors import InvalidTransition
from orderdesk.core.normalize import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMATION,
    STATUS_RECEIVING,
    STATUS_REVIEWS,
    STATUS_SHIPPING,
    Order,
    StatusEntry,
    utc_now,
)

STATUS_FLOW: dict[str, str | None] = {
    STATUS_CONFIRMATION: STATUS_SHIPPING,
    STATUS_SHIPPING: STATUS_RECEIVING,
    STATUS_RECEIVING: STATUS_COMPLETED,
    STATUS_COMPLETED: STATUS_REVIEWS,
    STATUS_REVIEWS: None,
}
FORWARD_SEQUENCE = (
    STATUS_CONFIRMATION,
    STATUS_SHIPPING,
    STATUS_RECEIVING,
    STATUS_COMPLETED,
    STATUS_REVIEWS,
)
TERMINAL_STATUSES = frozenset({STATUS_REVIEWS, STATUS_CANCELLED})
# Once delivered, an order can no longer be cancelled.
CANCELLABLE_STATUSES = frozenset({STATUS_CONFIRMATION, STATUS_SHIPPING, STATUS_RECEIVING})

STATUS_LABELS = {
    STATUS_CONFIRMATION: "Confirmation",
    STATUS_SHIPPING: "Shipping",
    STATUS_RECEIVING: "Receiving",
    STATUS_COMPLETED: "Completed",
    STATUS_REVIEWS: "Reviews",
    STATUS_CANCELLED: "Cancelled",
}


def next_status(status: str) -> str | None:
    return STATUS_FLOW.get(status)


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def _requester_id(requested_by: OperatorContext | str | None) -> str | None:
    if isinstance(requested_by, OperatorContext):
        return requested_by.operator_id
    return requested_by


class OrderStateMachine:
    """
    Validates forward moves along the fulfillment sequence and persists them.

    Persistence is a compare-and-set on the status the caller read, so two
    operators advancing the same order cannot both succeed.
    """

    def __init__(self, repository: OrderRepository, clock: Callable[[], datetime] = utc_now):
        self.repository = repository
        self.clock = clock

    def _entry_timestamp(self, order: Order) -> datetime:
        now = self.clock()
        if order.status_history:
            # Keep history non-decreasing even if clocks disagree.
            return max(now, order.status_history[-1].timestamp)
        return now

    def _apply(self, order: Order, entry: StatusEntry) -> tuple[str, StatusEntry]:
        self.repository.transition(order.id, expected_status=order.status, entry=entry)
        order.status = entry.status
        order.status_history.append(entry)
        return entry.status, entry

    def advance(self, order: Order, requested_by: OperatorContext | str | None) -> tuple[str, StatusEntry]:
        if is_terminal(order.status):
            raise InvalidTransition(order.id, order.status)
        new_status = next_status(order.status)
        if new_status is None:
            raise InvalidTransition(order.id, order.status)

        entry = StatusEntry(
            status=new_status,
            timestamp=self._entry_timestamp(order),
            note=f"Status updated to {status_label(new_status)}",
            requested_by=_requester_id(requested_by),
        )
        return self._apply(order, entry)

    def cancel(
        self,
        order: Order,
        requested_by: OperatorContext | str | None,
        reason: str | None = None,
    ) -> tuple[str, StatusEntry]:
        if order.status not in CANCELLABLE_STATUSES:
            raise InvalidTransition(order.id, order.status, action="cancel")

        note = f"Order cancelled: {reason.strip()}" if reason and reason.strip() else "Order cancelled"
        entry = StatusEntry(
            status=STATUS_CANCELLED,
            timestamp=self._entry_timestamp(order),
            note=note,
            requested_by=_requester_id(requested_by),
        )
        return self._apply(order, entry)
