from .base import SqliteRepository
from .changes import ChangeFeed, Subscription
from .migrations import apply_migrations, connect_db
from .operators import OperatorRepository
from .orders import OrderRepository

__all__ = [
    "connect_db",
    "apply_migrations",
    "ChangeFeed",
    "Subscription",
    "SqliteRepository",
    "OrderRepository",
    "OperatorRepository",
]
