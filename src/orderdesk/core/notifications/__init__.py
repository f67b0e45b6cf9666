from .composer import compose, format_amount, short_order_id

__all__ = ["compose", "format_amount", "short_order_id"]
