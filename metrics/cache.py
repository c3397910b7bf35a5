"""Holder for the most recent snapshot."""
import threading


class SnapshotCache:
    """Latest Snapshot, swapped atomically under a lock.

    Written by the broadcaster thread, read by connection handlers. The lock is
    only ever held long enough to copy a reference.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = None
        self._seq = 0

    def get(self):
        """Return the latest Snapshot, or None before the first sample."""
        with self._lock:
            return self._snapshot

    def get_with_seq(self):
        """Return (seq, snapshot) where seq is the tick that produced it."""
        with self._lock:
            return self._seq, self._snapshot

    def set(self, snapshot, seq=None):
        """Replace the cached snapshot."""
        with self._lock:
            self._snapshot = snapshot
            self._seq = seq if seq is not None else self._seq + 1

    def clear(self):
        with self._lock:
            self._snapshot = None
            self._seq = 0
