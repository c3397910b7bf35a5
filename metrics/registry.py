"""
Subscriber tracking for snapshot fan-out.

Registration and removal may happen from any connection handler while the
broadcaster is iterating. Iteration works on a copy of the subscriber list,
and each subscriber guards its own delivery with a lock so that once
unregister() returns nothing more is sent to it.
"""
import logging
import threading
import uuid
from enum import Enum

logger = logging.getLogger(__name__)


class SubscriberState(Enum):
    ACTIVE = 'active'
    CLOSED = 'closed'


class Subscriber:
    """One logical listener, usually backed by one live connection."""

    def __init__(self, subscriber_id, send):
        self.id = subscriber_id
        self._send = send
        # Reentrant: a send callback may trigger its own unregister
        self._lock = threading.RLock()
        self._state = SubscriberState.ACTIVE
        self._last_seq = 0

    @property
    def state(self) -> SubscriberState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is SubscriberState.ACTIVE

    @property
    def last_seq(self) -> int:
        return self._last_seq

    def deliver(self, seq, payload) -> bool:
        """Send a payload unless it is stale or the subscriber is closed.

        Payloads carry the sequence number of the tick that produced them.
        Anything at or below the last delivered sequence is dropped, which
        keeps delivery ordered and free of duplicates when a cached snapshot
        and a live tick race each other.

        Returns True if the payload was sent. Exceptions from the send
        callable propagate to the caller.
        """
        with self._lock:
            if self._state is not SubscriberState.ACTIVE or seq <= self._last_seq:
                return False
            self._send(payload)
            self._last_seq = seq
            return True

    def close(self):
        with self._lock:
            self._state = SubscriberState.CLOSED

    def __repr__(self):
        return f"Subscriber(id={self.id!r}, state={self._state.value})"


class SubscriptionRegistry:
    """Thread-safe set of active subscribers."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers = {}

    def register(self, send, subscriber_id=None) -> Subscriber:
        """Add a subscriber and return its handle.

        Registering an id that is already present replaces (and closes) the
        previous subscriber with that id.
        """
        subscriber = Subscriber(subscriber_id or uuid.uuid4().hex, send)
        with self._lock:
            previous = self._subscribers.get(subscriber.id)
            self._subscribers[subscriber.id] = subscriber
        if previous is not None:
            previous.close()
        logger.debug(f"Registered subscriber {subscriber.id}")
        return subscriber

    def unregister(self, handle) -> bool:
        """Remove a subscriber by handle or id. Unknown handles are ignored.

        Returns True if a subscriber was removed.
        """
        subscriber_id = handle.id if isinstance(handle, Subscriber) else handle
        with self._lock:
            subscriber = self._subscribers.get(subscriber_id)
            # A stale handle must not remove a newer subscriber with the same id
            if subscriber is None or (isinstance(handle, Subscriber) and subscriber is not handle):
                subscriber = None
            else:
                del self._subscribers[subscriber_id]
        if isinstance(handle, Subscriber):
            handle.close()
        if subscriber is None:
            return False
        subscriber.close()
        logger.debug(f"Unregistered subscriber {subscriber_id}")
        return True

    def for_each(self, fn):
        """Call fn(subscriber) for every subscriber registered right now.

        fn runs outside the registry lock, so it may register or unregister.
        """
        with self._lock:
            subscribers = list(self._subscribers.values())
        for subscriber in subscribers:
            if subscriber.active:
                fn(subscriber)

    def get(self, subscriber_id):
        with self._lock:
            return self._subscribers.get(subscriber_id)

    def ids(self):
        with self._lock:
            return list(self._subscribers)

    def __len__(self):
        with self._lock:
            return len(self._subscribers)

    def __contains__(self, handle):
        subscriber_id = handle.id if isinstance(handle, Subscriber) else handle
        with self._lock:
            return subscriber_id in self._subscribers
