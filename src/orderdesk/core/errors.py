from __future__ import annotations


class OrderDeskError(Exception):
    """Base class for failures reported back to the operator."""


class NotFound(OrderDeskError):
    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class InvalidTransition(OrderDeskError):
    def __init__(self, order_id: str, status: str, action: str = "advance", message: str | None = None):
        super().__init__(message or f"Cannot {action} order {order_id} from status '{status}'")
        self.order_id = order_id
        self.status = status
        self.action = action


class StaleStatus(InvalidTransition):
    """Another writer changed the order status after it was read."""

    def __init__(self, order_id: str, expected: str, actual: str, action: str = "advance"):
        super().__init__(
            order_id,
            actual,
            action,
            message=f"Order {order_id} is now '{actual}', expected '{expected}'; {action} was not applied",
        )
        self.expected = expected


class Unauthorized(OrderDeskError):
    def __init__(self, operator_id: str, role: str | None, action: str):
        super().__init__(f"Operator {operator_id} (role: {role or 'none'}) may not {action}")
        self.operator_id = operator_id
        self.role = role
        self.action = action


class StoreUnavailable(OrderDeskError):
    def __init__(self, message: str, *, partition: str | None = None):
        super().__init__(message)
        self.partition = partition


class PartialFailure(OrderDeskError):
    """The order status changed but the customer notification was not written."""

    def __init__(self, order_id: str, new_status: str, cause: Exception):
        super().__init__(
            f"Order {order_id} moved to '{new_status}' but the customer was not notified: {cause}"
        )
        self.order_id = order_id
        self.new_status = new_status
        self.cause = cause
