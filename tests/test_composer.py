from __future__ import annotations

from orderdesk.core.normalize import Order, OrderItem
from orderdesk.core.notifications import compose, format_amount, short_order_id


def _order(**overrides) -> Order:  # noqa: ANN003
    order = Order(
        id="abcdef1234567890",
        customer_id="cust-1",
        items=[OrderItem("Mug", 2, 150.0), OrderItem("Tea", 1, 200.0)],
        total_amount=500.0,
        delivery_address="12 Rizal St, Manila",
    )
    for key, value in overrides.items():
        setattr(order, key, value)
    return order


def test_templates_per_status() -> None:
    order = _order()
    assert compose("confirmation", order) == (
        "Your order #abcdef12 has been confirmed! We're preparing 2 item(s) for shipment. Total: ₱500.00"
    )
    assert compose("shipping", order) == (
        "Your order #abcdef12 is now being shipped to 12 Rizal St, Manila. You'll receive it soon!"
    )
    assert compose("receiving", order) == (
        "Your order #abcdef12 is out for delivery! Our courier will arrive at your address shortly."
    )
    assert compose("completed", order) == "Your order #abcdef12 has been delivered! We hope you enjoy your purchase."
    assert compose("reviews", order) == "How was your experience? We'd love feedback on order #abcdef12."


def test_unknown_status_uses_generic_template() -> None:
    assert compose("cancelled", _order()) == "Your order #abcdef12 status has been updated to Cancelled."
    assert compose("on_hold", _order()) == "Your order #abcdef12 status has been updated to on_hold."


def test_missing_fields_render_placeholders() -> None:
    order = _order(id="", delivery_address=None, total_amount=None, items=[])
    assert compose("shipping", order) == "Your order #N/A is now being shipped to N/A. You'll receive it soon!"
    assert compose("confirmation", order) == (
        "Your order #N/A has been confirmed! We're preparing 0 item(s) for shipment. Total: N/A"
    )
    assert "N/A" in compose("completed", None)


def test_compose_is_pure() -> None:
    order = _order()
    first = compose("shipping", order)
    assert compose("shipping", order) == first
    assert order.status == "confirmation"
    assert order.status_history == []


def test_helpers() -> None:
    assert short_order_id("1234") == "1234"
    assert short_order_id(None) == "N/A"
    assert format_amount(1234.5) == "₱1234.50"
    assert format_amount("oops") == "N/A"
