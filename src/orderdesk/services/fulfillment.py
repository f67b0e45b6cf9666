from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable

from orderdesk.core.access import FULFILLMENT_ROLES, OperatorContext, require_role
from orderdesk.core.conversations import ConversationStore, Increment, owner_name_for
from orderdesk.core.db import OrderRepository
from orderdesk.core.errors import OrderDeskError, PartialFailure
from orderdesk.core.normalize import SENDER_ADMIN, Message, Order, StatusEntry, utc_now
from orderdesk.core.notifications import compose
from orderdesk.core.orders import OrderStateMachine, status_label


class OutcomeKind(str, Enum):
    FULLY_SUCCEEDED = "fully_succeeded"
    STATUS_ADVANCED_NOTIFICATION_FAILED = "status_advanced_notification_failed"
    REJECTED = "rejected"


@dataclass(slots=True)
class FulfillmentOutcome:
    kind: OutcomeKind
    order_id: str
    previous_status: str | None = None
    new_status: str | None = None
    history_entry: StatusEntry | None = None
    message: Message | None = None
    error: OrderDeskError | None = None

    @property
    def succeeded(self) -> bool:
        return self.kind is OutcomeKind.FULLY_SUCCEEDED

    @property
    def status_changed(self) -> bool:
        return self.kind is not OutcomeKind.REJECTED

    def describe(self) -> str:
        if self.kind is OutcomeKind.FULLY_SUCCEEDED:
            if self.history_entry is None:
                return f"Customer notified about order {self.order_id} ({status_label(self.new_status or '')})"
            return (
                f"Order {self.order_id} updated to {status_label(self.new_status or '')} "
                "and customer has been notified"
            )
        if self.kind is OutcomeKind.STATUS_ADVANCED_NOTIFICATION_FAILED:
            return (
                f"Order {self.order_id} updated to {status_label(self.new_status or '')} "
                f"but the notification failed: {self.error}"
            )
        return f"Order {self.order_id} was not changed: {self.error}"


class FulfillmentService:
    """
    Runs one operator action as: authorize, move the order, tell the customer.

    The order write and the conversation writes live in different partitions.
    A failed notification is reported as STATUS_ADVANCED_NOTIFICATION_FAILED and
    the status change stays in place.
    """

    def __init__(
        self,
        orders: OrderRepository,
        conversations: ConversationStore,
        logger: logging.Logger | logging.LoggerAdapter,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.orders = orders
        self.conversations = conversations
        self.logger = logger
        self.clock = clock
        self.state_machine = OrderStateMachine(orders, clock=clock)

    def _reject(self, order_id: str, error: OrderDeskError, previous_status: str | None = None) -> FulfillmentOutcome:
        self.logger.warning("Order %s rejected: %s", order_id, error)
        return FulfillmentOutcome(
            kind=OutcomeKind.REJECTED,
            order_id=order_id,
            previous_status=previous_status,
            error=error,
        )

    def _notify(self, order: Order, status: str) -> Message:
        text = compose(status, order)
        now = self.clock()
        message, _ = self.conversations.append_with_summary(
            order.customer_id,
            Message(
                id="",
                customer_id=order.customer_id,
                sender_role=SENDER_ADMIN,
                timestamp=now,
                text=text,
                order_related=False,
            ),
            {
                "last_message": text,
                "timestamp": now,
                "unread_by_user": Increment(1),
                "unread_by_admin": 0,
            },
            defaults={"owner_name": owner_name_for(order)},
        )
        return message

    def _run_transition(
        self,
        order_id: str,
        operator: OperatorContext,
        action: str,
        transition: Callable[[Order], tuple[str, StatusEntry]],
    ) -> FulfillmentOutcome:
        try:
            require_role(operator, FULFILLMENT_ROLES, f"{action} orders")
            order = self.orders.require_order(order_id)
        except OrderDeskError as exc:
            return self._reject(order_id, exc)

        previous_status = order.status
        try:
            new_status, entry = transition(order)
        except OrderDeskError as exc:
            return self._reject(order_id, exc, previous_status)

        self.logger.info(
            "Order %s: %s -> %s by %s",
            order_id,
            previous_status,
            new_status,
            operator.operator_id,
        )

        try:
            message = self._notify(order, new_status)
        except OrderDeskError as exc:
            failure = PartialFailure(order_id, new_status, exc)
            self.logger.error("%s", failure)
            return FulfillmentOutcome(
                kind=OutcomeKind.STATUS_ADVANCED_NOTIFICATION_FAILED,
                order_id=order_id,
                previous_status=previous_status,
                new_status=new_status,
                history_entry=entry,
                error=failure,
            )

        self.logger.info("Customer %s notified about order %s", order.customer_id, order_id)
        return FulfillmentOutcome(
            kind=OutcomeKind.FULLY_SUCCEEDED,
            order_id=order_id,
            previous_status=previous_status,
            new_status=new_status,
            history_entry=entry,
            message=message,
        )

    def advance_and_notify(self, order_id: str, operator: OperatorContext) -> FulfillmentOutcome:
        return self._run_transition(
            order_id,
            operator,
            "advance",
            lambda order: self.state_machine.advance(order, operator),
        )

    def cancel_and_notify(
        self,
        order_id: str,
        operator: OperatorContext,
        reason: str | None = None,
    ) -> FulfillmentOutcome:
        return self._run_transition(
            order_id,
            operator,
            "cancel",
            lambda order: self.state_machine.cancel(order, operator, reason),
        )

    def resend_notification(self, order_id: str, operator: OperatorContext) -> FulfillmentOutcome:
        """Retry path after a partial failure: notify about the current status again."""
        try:
            require_role(operator, FULFILLMENT_ROLES, "notify customers")
            order = self.orders.require_order(order_id)
        except OrderDeskError as exc:
            return self._reject(order_id, exc)

        try:
            message = self._notify(order, order.status)
        except OrderDeskError as exc:
            self.logger.error("Notification for order %s failed again: %s", order_id, exc)
            return FulfillmentOutcome(
                kind=OutcomeKind.REJECTED,
                order_id=order_id,
                previous_status=order.status,
                error=exc,
            )

        self.logger.info("Customer %s re-notified about order %s", order.customer_id, order_id)
        return FulfillmentOutcome(
            kind=OutcomeKind.FULLY_SUCCEEDED,
            order_id=order_id,
            previous_status=order.status,
            new_status=order.status,
            message=message,
        )
