# sophub/services/events.py
"""
In-process change feed.

Writers publish a ChangeEvent after committing an insert, update or delete;
subscribers register a callback for one table (optionally narrowed to one
user's rows) and are called synchronously on the publishing thread.
"""
from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Literal, Optional

from sqlalchemy import inspect as sa_inspect

from sophub.core.timeutils import utcnow

log = logging.getLogger("sophub.services.events")

ChangeType = Literal["INSERT", "UPDATE", "DELETE"]


@dataclass(frozen=True)
class ChangeEvent:
    """One committed row change."""

    table: str
    type: ChangeType
    row: Dict[str, Any]
    user_id: Optional[int] = None
    old: Optional[Dict[str, Any]] = None
    ts_utc: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class Subscription:
    id: int
    table: str
    callback: Callable[[ChangeEvent], None]
    user_id: Optional[int] = None

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        return self.user_id is None or event.user_id == self.user_id


class ChangeFeed:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._subs: Dict[int, Subscription] = {}

    def subscribe(
        self,
        table: str,
        callback: Callable[[ChangeEvent], None],
        user_id: Optional[int] = None,
    ) -> Subscription:
        with self._lock:
            sub = Subscription(id=next(self._ids), table=table, callback=callback, user_id=user_id)
            self._subs[sub.id] = sub
        log.debug("subscribed id=%s table=%s user_id=%s", sub.id, table, user_id)
        return sub

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Returns False when the subscription was already gone."""
        with self._lock:
            removed = self._subs.pop(subscription.id, None)
        return removed is not None

    def subscribers(self, table: Optional[str] = None) -> List[Subscription]:
        with self._lock:
            subs = list(self._subs.values())
        return [s for s in subs if table is None or s.table == table]

    def publish(
        self,
        table: str,
        type: ChangeType,
        row: Dict[str, Any],
        user_id: Optional[int] = None,
        old: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Deliver to matching subscribers; returns how many were called."""
        event = ChangeEvent(table=table, type=type, row=dict(row), user_id=user_id, old=old)
        delivered = 0
        for sub in self.subscribers(table):
            if not sub.matches(event):
                continue
            try:
                sub.callback(event)
                delivered += 1
            except Exception:
                # one broken subscriber must not starve the others
                log.exception("change feed subscriber %s failed for %s %s", sub.id, type, table)
        return delivered


# Process-wide feed used by the services and exposed on app.state
change_feed = ChangeFeed()


def row_dict(obj: Any) -> Dict[str, Any]:
    """Column values of an ORM instance, keyed by attribute name."""
    return {attr.key: getattr(obj, attr.key) for attr in sa_inspect(obj).mapper.column_attrs}
