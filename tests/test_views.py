from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from orderdesk.core.errors import Unauthorized
from orderdesk.core.orders import OrderStateMachine
from orderdesk.services import ChatService, ConversationInbox, ConversationThread, OrderBoard


def _seed_orders(make_order, count: int) -> list[str]:  # noqa: ANN001
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    ids = []
    for index in range(count):
        order = make_order(f"order-{index:02d}", order_date=start + timedelta(days=index))
        ids.append(order.id)
    return ids


def test_order_board_pages_newest_first(order_repository, make_order) -> None:  # noqa: ANN001
    ids = _seed_orders(make_order, 8)

    with OrderBoard(order_repository, per_page=6) as board:
        first = board.page(1)
        second = board.page(2)
        clamped = board.page(99)

    assert [o.id for o in first.orders] == list(reversed(ids))[:6]
    assert [o.id for o in second.orders] == list(reversed(ids))[6:]
    assert first.total_pages == 2
    assert first.has_next and not first.has_previous
    assert clamped.number == 2


def test_order_board_filters_and_follows_changes(order_repository, make_order, staff) -> None:  # noqa: ANN001
    ids = _seed_orders(make_order, 3)
    updates: list[int] = []

    board = OrderBoard(order_repository, on_update=lambda: updates.append(1))
    assert board.counts()["all"] == 3
    assert board.counts()["confirmation"] == 3

    OrderStateMachine(order_repository).advance(order_repository.require_order(ids[0]), staff)

    assert len(updates) == 2
    assert board.counts()["shipping"] == 1
    assert [o.id for o in board.filtered("shipping")] == [ids[0]]
    assert board.page(1, status="reviews").orders == []

    board.close()
    assert order_repository.changes.subscriber_count() == 0


def test_inbox_search_and_unread(conversation_store) -> None:  # noqa: ANN001
    conversation_store.upsert_summary("c1", {"unread_by_admin": 2, "timestamp": "2026-01-01T00:00:00Z"}, {"owner_name": "Maria"})
    conversation_store.upsert_summary("c2", {"unread_by_admin": 1, "timestamp": "2026-01-02T00:00:00Z"}, {"owner_name": "juan"})

    with ConversationInbox(conversation_store) as inbox:
        assert [s.customer_id for s in inbox.search()] == ["c2", "c1"]
        assert [s.customer_id for s in inbox.search("MAR")] == ["c1"]
        assert inbox.total_unread == 3

        conversation_store.upsert_summary("c3", {"has_new_order": True, "pending_order_id": "o-1"})
        assert [s.customer_id for s in inbox.new_orders] == ["c3"]


def test_opening_thread_marks_it_read(conversation_store, make_order, test_logger, staff) -> None:  # noqa: ANN001
    order = make_order()
    conversation_store.record_order_placed(order)
    chat = ChatService(conversation_store, test_logger)

    with ConversationThread(conversation_store, "cust-1", chat, staff) as thread:
        assert len(thread.messages) == 1
        assert len(thread.pending_orders) == 1
        assert conversation_store.require_summary("cust-1").unread_by_admin == 0

        chat.send_admin_message("cust-1", "Thanks for your order!", staff)
        assert [m.sender_role for m in thread.messages] == ["customer", "admin"]

    assert conversation_store.changes.subscriber_count() == 0


def test_thread_refused_for_customer_leaves_no_subscription(  # noqa: ANN001
    conversation_store, make_order, test_logger, customer
) -> None:
    conversation_store.record_order_placed(make_order())
    chat = ChatService(conversation_store, test_logger)

    with pytest.raises(Unauthorized):
        ConversationThread(conversation_store, "cust-1", chat, customer)

    assert conversation_store.changes.subscriber_count() == 0
    assert conversation_store.require_summary("cust-1").unread_by_admin == 1
