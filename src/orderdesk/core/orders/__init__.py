from .state_machine import (
    CANCELLABLE_STATUSES,
    FORWARD_SEQUENCE,
    STATUS_FLOW,
    TERMINAL_STATUSES,
    OrderStateMachine,
    is_terminal,
    next_status,
    status_label,
)

__all__ = [
    "CANCELLABLE_STATUSES",
    "FORWARD_SEQUENCE",
    "STATUS_FLOW",
    "TERMINAL_STATUSES",
    "OrderStateMachine",
    "is_terminal",
    "next_status",
    "status_label",
]
