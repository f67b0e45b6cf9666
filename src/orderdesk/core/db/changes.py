from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

Snapshot = Callable[[], Any]
Listener = Callable[[Any], None]


class Subscription:
    def __init__(self, feed: ChangeFeed, topic: str, snapshot: Snapshot, listener: Listener):
        self._feed = feed
        self.topic = topic
        self._snapshot = snapshot
        self._listener = listener
        self.active = True

    def deliver(self) -> None:
        if not self.active:
            return
        try:
            self._listener(self._snapshot())
        except Exception:  # noqa: BLE001
            # A broken view must not fail the write that triggered it.
            logger.exception("Subscriber for %s failed", self.topic)

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._feed.remove(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.unsubscribe()


class ChangeFeed:
    """
    Push-based change notifications for one storage partition.

    Writes made through the owning repository publish their topics right after
    commit. Commits made by other connections (other processes, other threads'
    repositories) are picked up by ``poll()``, which compares sqlite's
    ``PRAGMA data_version`` and re-delivers every live subscription.
    """

    def __init__(self, connection: sqlite3.Connection):
        self._connection = connection
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []
        self._data_version = self._read_data_version()

    def _read_data_version(self) -> int:
        return int(self._connection.execute("PRAGMA data_version").fetchone()[0])

    def subscribe(self, topic: str, snapshot: Snapshot, listener: Listener) -> Subscription:
        subscription = Subscription(self, topic, snapshot, listener)
        with self._lock:
            self._subscriptions.append(subscription)
        subscription.deliver()
        return subscription

    def remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def subscriber_count(self, topic: str | None = None) -> int:
        with self._lock:
            return sum(1 for sub in self._subscriptions if topic is None or sub.topic == topic)

    def publish(self, *topics: str) -> None:
        with self._lock:
            targets = [sub for sub in self._subscriptions if sub.topic in topics]
            self._data_version = self._read_data_version()
        for subscription in targets:
            subscription.deliver()

    def poll(self) -> bool:
        with self._lock:
            current = self._read_data_version()
            if current == self._data_version:
                return False
            self._data_version = current
            targets = list(self._subscriptions)
        for subscription in targets:
            subscription.deliver()
        return True
