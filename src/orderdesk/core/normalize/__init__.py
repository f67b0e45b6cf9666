from .models import (
    ORDER_STATUSES,
    SENDER_ADMIN,
    SENDER_CUSTOMER,
    SENDER_ROLES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMATION,
    STATUS_RECEIVING,
    STATUS_REVIEWS,
    STATUS_SHIPPING,
    ConversationSummary,
    Message,
    Operator,
    Order,
    OrderItem,
    StatusEntry,
)
from .timestamps import to_datetime, to_iso, to_millis, utc_now

__all__ = [
    "ORDER_STATUSES",
    "SENDER_ADMIN",
    "SENDER_CUSTOMER",
    "SENDER_ROLES",
    "STATUS_CANCELLED",
    "STATUS_COMPLETED",
    "STATUS_CONFIRMATION",
    "STATUS_RECEIVING",
    "STATUS_REVIEWS",
    "STATUS_SHIPPING",
    "ConversationSummary",
    "Message",
    "Operator",
    "Order",
    "OrderItem",
    "StatusEntry",
    "to_datetime",
    "to_iso",
    "to_millis",
    "utc_now",
]
