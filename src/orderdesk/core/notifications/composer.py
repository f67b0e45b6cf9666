from __future__ import annotations

from orderdesk.core.normalize import (
    STATUS_COMPLETED,
    STATUS_CONFIRMATION,
    STATUS_RECEIVING,
    STATUS_REVIEWS,
    STATUS_SHIPPING,
    Order,
)
from orderdesk.core.orders.state_machine import status_label

CURRENCY_SYMBOL = "₱"
PLACEHOLDER = "N/A"

TEMPLATES = {
    STATUS_CONFIRMATION: (
        "Your order #{id8} has been confirmed! We're preparing {count} item(s) for shipment. Total: {amount}"
    ),
    STATUS_SHIPPING: "Your order #{id8} is now being shipped to {address}. You'll receive it soon!",
    STATUS_RECEIVING: "Your order #{id8} is out for delivery! Our courier will arrive at your address shortly.",
    STATUS_COMPLETED: "Your order #{id8} has been delivered! We hope you enjoy your purchase.",
    STATUS_REVIEWS: "How was your experience? We'd love feedback on order #{id8}.",
}
FALLBACK_TEMPLATE = "Your order #{id8} status has been updated to {label}."


def short_order_id(order_id: str | None) -> str:
    if not order_id:
        return PLACEHOLDER
    return str(order_id)[:8]


def format_amount(amount: float | int | None) -> str:
    if amount is None:
        return PLACEHOLDER
    try:
        return f"{CURRENCY_SYMBOL}{float(amount):.2f}"
    except (TypeError, ValueError):
        return PLACEHOLDER


def compose(status: str, order: Order | None) -> str:
    """Customer-facing text for an order that just moved to ``status``."""
    order_id = getattr(order, "id", None)
    items = getattr(order, "items", None) or []
    address = getattr(order, "delivery_address", None)
    fields = {
        "id8": short_order_id(order_id),
        "count": len(items),
        "amount": format_amount(getattr(order, "total_amount", None)),
        "address": address.strip() if isinstance(address, str) and address.strip() else PLACEHOLDER,
        "label": status_label(status) if status else PLACEHOLDER,
    }
    template = TEMPLATES.get(status, FALLBACK_TEMPLATE)
    return template.format(**fields)
