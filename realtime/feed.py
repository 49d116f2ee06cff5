"""
Change feed registry: process-local publish/subscribe for storage change events.

Producers (dataset store, metadata tracker, linker) publish a ChangeEvent
after each commit. Consumers subscribe to a resource name, optionally with a
row filter, and get back an unsubscribe function. Releasing that function is
the only teardown path; the registry never drops live subscriptions on its own.

Filter syntax is the column/operator form used by the portal front end:

    user_id=eq.42
    status=neq.error
    total_records=gte.100
    dataset_name=in.(pm_ajay_dataset_1,pm_ajay_dataset_2)
"""

import enum
import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class ChangeType(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """A single row mutation on a named resource"""
    resource: str
    event_type: ChangeType
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)
    commit_timestamp: datetime = field(default_factory=datetime.utcnow)

    @property
    def row(self) -> Dict[str, Any]:
        """The row a filter is evaluated against"""
        if self.event_type == ChangeType.DELETE:
            return self.old
        return self.new

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource": self.resource,
            "eventType": self.event_type.value,
            "new": self.new,
            "old": self.old,
            "commitTimestamp": self.commit_timestamp.isoformat(),
        }


ChangeCallback = Callable[[ChangeEvent], None]


class InvalidFilterError(ValueError):
    """Raised when a subscription filter cannot be parsed"""


def _text(value: Any) -> str:
    """Filter-side text of a column value; booleans use the lowercase JSON form"""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _compare(actual: Any, expected: str) -> int:
    """Three-way compare, numerically when both sides are numbers"""
    try:
        left, right = float(actual), float(expected)
    except (TypeError, ValueError):
        left, right = str(actual), expected
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "eq": lambda actual, value: _text(actual) == value,
    "neq": lambda actual, value: _text(actual) != value,
    "gt": lambda actual, value: _compare(actual, value) > 0,
    "gte": lambda actual, value: _compare(actual, value) >= 0,
    "lt": lambda actual, value: _compare(actual, value) < 0,
    "lte": lambda actual, value: _compare(actual, value) <= 0,
    "in": lambda actual, values: _text(actual) in values,
}


@dataclass(frozen=True)
class RowFilter:
    column: str
    operator: str
    value: Any

    @classmethod
    def parse(cls, expression: str) -> "RowFilter":
        column, sep, rest = expression.partition("=")
        operator, dot, value = rest.partition(".")
        if not sep or not dot or not column or operator not in _OPERATORS:
            raise InvalidFilterError(f"Invalid filter expression: {expression!r}")

        if operator == "in":
            if not (value.startswith("(") and value.endswith(")")):
                raise InvalidFilterError(f"'in' filter needs a parenthesised list: {expression!r}")
            value = frozenset(v.strip() for v in value[1:-1].split(",") if v.strip())

        return cls(column=column.strip(), operator=operator, value=value)

    def matches(self, row: Dict[str, Any]) -> bool:
        if not row or self.column not in row:
            return False
        actual = row[self.column]
        if actual is None:
            return False
        return _OPERATORS[self.operator](actual, self.value)


@dataclass
class Subscription:
    channel: str
    resource: str
    callback: ChangeCallback
    filter: Optional[str] = None
    row_filter: Optional[RowFilter] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    active: bool = True

    def matches(self, event: ChangeEvent) -> bool:
        if event.resource != self.resource:
            return False
        if self.row_filter is None:
            return True
        return self.row_filter.matches(event.row)


class ChangeFeedRegistry:
    """
    Thread-safe registry of live subscriptions.

    Add and remove operations take a single lock. Callbacks run outside the
    lock, in subscription order, once per matching event. A subscription
    released while an event is being dispatched does not receive it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, Subscription] = {}
        self._sequence = itertools.count(1)

    def _channel_name(self, resource: str, filter: Optional[str]) -> str:
        # Millisecond clock alone collides for back-to-back subscribes
        return f"{resource}_{filter or 'all'}_{int(time.time() * 1000)}_{next(self._sequence)}"

    def subscribe(
        self,
        resource: str,
        callback: ChangeCallback,
        filter: Optional[str] = None
    ) -> Callable[[], None]:
        """
        Register a callback for change events on a resource.

        Returns:
            A function that releases the subscription. Calling it more than
            once is harmless.
        """
        row_filter = RowFilter.parse(filter) if filter else None

        with self._lock:
            channel = self._channel_name(resource, filter)
            self._subscriptions[channel] = Subscription(
                channel=channel,
                resource=resource,
                callback=callback,
                filter=filter,
                row_filter=row_filter,
            )

        logger.debug(f"Subscribed {channel}")

        def unsubscribe() -> None:
            self.unsubscribe(channel)

        unsubscribe.channel = channel
        return unsubscribe

    def unsubscribe(self, channel: str) -> bool:
        with self._lock:
            subscription = self._subscriptions.pop(channel, None)
            if subscription is None:
                return False
            subscription.active = False

        logger.debug(f"Unsubscribed {channel}")
        return True

    def unsubscribe_all(self) -> int:
        with self._lock:
            subscriptions = list(self._subscriptions.values())
            for subscription in subscriptions:
                subscription.active = False
            self._subscriptions.clear()

        logger.info(f"Released {len(subscriptions)} change feed subscriptions")
        return len(subscriptions)

    def publish(self, event: ChangeEvent) -> int:
        """
        Deliver an event to every active matching subscription.

        Returns:
            Number of callbacks that received the event
        """
        with self._lock:
            targets = [s for s in self._subscriptions.values() if s.resource == event.resource]

        delivered = 0
        for subscription in targets:
            if not subscription.active or not subscription.matches(event):
                continue
            try:
                subscription.callback(event)
                delivered += 1
            except Exception:
                logger.exception(
                    f"Change feed callback failed on {subscription.channel} "
                    f"({event.event_type.value} {event.resource})"
                )

        return delivered

    def active_channels(self, resource: Optional[str] = None) -> List[str]:
        with self._lock:
            return [
                channel for channel, s in self._subscriptions.items()
                if resource is None or s.resource == resource
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)


def emit(
    feed: Optional[ChangeFeedRegistry],
    resource: str,
    event_type: ChangeType,
    new: Optional[Dict[str, Any]] = None,
    old: Optional[Dict[str, Any]] = None
) -> int:
    """Publish a change event if a feed is attached; no-op otherwise"""
    if feed is None:
        return 0
    return feed.publish(ChangeEvent(
        resource=resource,
        event_type=event_type,
        new=new or {},
        old=old or {},
    ))
