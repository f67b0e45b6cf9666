from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from orderdesk.config import Settings
from orderdesk.core.access import OperatorContext
from orderdesk.core.conversations import ConversationStore
from orderdesk.core.db import OperatorRepository
from orderdesk.core.normalize import Order, OrderItem


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch) -> None:  # noqa: ANN001
    for name in ("ORDERDESK_HOME", "ORDERDESK_OPERATOR_ID", "ORDERDESK_OPERATOR_ROLE", "ORDERDESK_UPLOAD_URL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def order_repository(tmp_path: Path):
    repo = OperatorRepository(tmp_path / "orders.sqlite3")
    repo.migrate()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture()
def conversation_store(tmp_path: Path):
    store = ConversationStore(tmp_path / "conversations.sqlite3")
    store.migrate()
    try:
        yield store
    finally:
        store.close()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    root = tmp_path / "project"
    root.mkdir(parents=True, exist_ok=True)
    s = Settings.load(base_dir=root)
    s.ensure_directories()
    return s


@pytest.fixture()
def test_logger() -> logging.Logger:
    logger = logging.getLogger("orderdesk-test")
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.INFO)
    return logger


@pytest.fixture()
def admin() -> OperatorContext:
    return OperatorContext(operator_id="admin-1", role="admin")


@pytest.fixture()
def staff() -> OperatorContext:
    return OperatorContext(operator_id="staff-1", role="staff")


@pytest.fixture()
def customer() -> OperatorContext:
    return OperatorContext(operator_id="cust-1", role="customer")


@pytest.fixture()
def make_order(order_repository):  # noqa: ANN001
    def _make(order_id: str = "abcdef1234567890", status: str = "confirmation", **overrides) -> Order:  # noqa: ANN003
        order = Order(
            id=order_id,
            customer_id="cust-1",
            status=status,
            items=[
                OrderItem(name="Coffee mug", quantity=2, unit_price=150.0),
                OrderItem(name="Tea sampler", quantity=1, unit_price=200.0),
            ],
            total_amount=500.0,
            customer_email="juan@example.com",
            delivery_address="12 Rizal St, Manila",
            payment_method="cod",
            order_date=datetime(2026, 1, 5, 9, 30, tzinfo=timezone.utc),
        )
        for key, value in overrides.items():
            setattr(order, key, value)
        order_repository.insert_order(order)
        return order_repository.require_order(order.id)

    return _make
