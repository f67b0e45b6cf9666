from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from orderdesk.cli import app
from orderdesk.config import Settings
from orderdesk.core.conversations import ConversationStore
from orderdesk.core.db import OrderRepository

runner = CliRunner()


def test_cli_workflow(tmp_path: Path) -> None:
    env = {"ORDERDESK_HOME": str(tmp_path)}
    orders_file = tmp_path / "orders.json"
    orders_file.write_text(
        json.dumps(
            [
                {
                    "id": "cli-order-1",
                    "customer_id": "cust-1",
                    "customer_email": "juan@example.com",
                    "items": [{"name": "Mug", "quantity": 1, "unit_price": 150}],
                    "total_amount": 150,
                    "delivery_address": "12 Rizal St, Manila",
                }
            ]
        ),
        encoding="utf-8",
    )

    assert runner.invoke(app, ["init"], env=env).exit_code == 0
    assert runner.invoke(app, ["operators", "add", "admin-1", "--role", "admin"], env=env).exit_code == 0
    assert runner.invoke(app, ["orders", "import", str(orders_file)], env=env).exit_code == 0

    result = runner.invoke(app, ["orders", "advance", "cli-order-1", "--as", "admin-1"], env=env)
    assert result.exit_code == 0, result.output

    missing = runner.invoke(app, ["orders", "advance", "nope", "--as", "admin-1"], env=env)
    assert missing.exit_code == 1

    unknown_operator = runner.invoke(app, ["chat", "send", "cust-1", "hello", "--as", "ghost"], env=env)
    assert unknown_operator.exit_code == 1

    settings = Settings.load(base_dir=tmp_path)
    with OrderRepository(settings.orders_db_path) as orders:
        assert orders.require_order("cli-order-1").status == "shipping"
    with ConversationStore(settings.chat_db_path) as conversations:
        summary = conversations.require_summary("cust-1")
        assert summary.unread_by_user == 1
        assert summary.has_new_order is True
