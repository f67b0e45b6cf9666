from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from orderdesk.core.db import OrderRepository
from orderdesk.core.errors import InvalidTransition, StaleStatus
from orderdesk.core.orders import FORWARD_SEQUENCE, OrderStateMachine, is_terminal, next_status


def _is_subsequence(statuses: list[str], sequence: tuple[str, ...]) -> bool:
    remaining = iter(sequence)
    return all(status in remaining for status in statuses)


def test_next_status_follows_forward_sequence() -> None:
    assert next_status("confirmation") == "shipping"
    assert next_status("completed") == "reviews"
    assert next_status("reviews") is None
    assert next_status("cancelled") is None
    assert is_terminal("reviews") and is_terminal("cancelled")
    assert not is_terminal("receiving")


def test_advance_walks_the_whole_sequence(order_repository, make_order, staff) -> None:  # noqa: ANN001
    order = make_order()
    machine = OrderStateMachine(order_repository)

    for expected in FORWARD_SEQUENCE[1:]:
        new_status, entry = machine.advance(order, staff)
        assert new_status == expected
        assert entry.requested_by == "staff-1"

    stored = order_repository.require_order(order.id)
    assert stored.status == "reviews"
    assert [entry.status for entry in stored.status_history] == list(FORWARD_SEQUENCE)
    assert stored.status_history[1].note == "Status updated to Shipping"
    assert stored.status_history[-1].note == "Status updated to Reviews"


@pytest.mark.parametrize("status", ["reviews", "cancelled"])
def test_terminal_advance_is_rejected_without_side_effects(order_repository, make_order, staff, status) -> None:  # noqa: ANN001
    order = make_order(status=status)
    machine = OrderStateMachine(order_repository)

    with pytest.raises(InvalidTransition):
        machine.advance(order, staff)

    stored = order_repository.require_order(order.id)
    assert stored.status == status
    assert len(stored.status_history) == 1


def test_stale_read_loses_compare_and_set(order_repository, make_order, staff, admin) -> None:  # noqa: ANN001
    first_view = make_order()
    second_view = order_repository.require_order(first_view.id)
    machine = OrderStateMachine(order_repository)

    machine.advance(first_view, staff)
    with pytest.raises(StaleStatus) as excinfo:
        machine.advance(second_view, admin)

    assert excinfo.value.expected == "confirmation"
    assert excinfo.value.status == "shipping"
    stored = order_repository.require_order(first_view.id)
    assert stored.status == "shipping"
    assert [entry.status for entry in stored.status_history] == ["confirmation", "shipping"]


def test_concurrent_advances_apply_once(order_repository, make_order, staff) -> None:  # noqa: ANN001
    order = make_order()
    workers = 6
    barrier = threading.Barrier(workers)
    results: list[str] = []
    lock = threading.Lock()

    def worker() -> None:
        with OrderRepository(order_repository.db_path) as repo:
            snapshot = repo.require_order(order.id)
            barrier.wait()
            try:
                OrderStateMachine(repo).advance(snapshot, staff)
                outcome = "ok"
            except StaleStatus:
                outcome = "stale"
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count("ok") == 1
    assert results.count("stale") == workers - 1
    stored = order_repository.require_order(order.id)
    assert [entry.status for entry in stored.status_history] == ["confirmation", "shipping"]


def test_history_stays_ordered_when_clock_goes_back(order_repository, make_order, staff) -> None:  # noqa: ANN001
    order = make_order()
    past = order.status_history[-1].timestamp - timedelta(days=3)
    machine = OrderStateMachine(order_repository, clock=lambda: past)

    machine.advance(order, staff)
    machine.advance(order, staff)

    timestamps = [entry.timestamp for entry in order_repository.require_order(order.id).status_history]
    assert timestamps == sorted(timestamps)


def test_cancel_policy(order_repository, make_order, admin) -> None:  # noqa: ANN001
    machine = OrderStateMachine(order_repository)

    shipping = make_order("order-shipping", status="shipping")
    new_status, entry = machine.cancel(shipping, admin, reason="customer request")
    assert new_status == "cancelled"
    assert entry.note == "Order cancelled: customer request"
    assert order_repository.require_order("order-shipping").status == "cancelled"

    completed = make_order("order-completed", status="completed")
    with pytest.raises(InvalidTransition):
        machine.cancel(completed, admin)
    assert order_repository.require_order("order-completed").status == "completed"


def test_history_is_subsequence_of_forward_order(order_repository, make_order, staff) -> None:  # noqa: ANN001
    order = make_order(order_date=datetime(2026, 3, 1, tzinfo=timezone.utc))
    machine = OrderStateMachine(order_repository)
    machine.advance(order, staff)
    machine.advance(order, staff)

    statuses = [entry.status for entry in order_repository.require_order(order.id).status_history]
    assert _is_subsequence(statuses, FORWARD_SEQUENCE)
