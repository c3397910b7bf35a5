"""
Snapshot broadcasting background thread.

SnapshotBroadcaster samples the host on a fixed interval, keeps the latest
snapshot in the cache and pushes it to every registered subscriber. Nothing
that happens inside a tick stops the timer; only stop() does.
"""
import logging
import threading
import time
from enum import Enum

from metrics import SamplingError, error_payload

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 3.0


class BroadcasterState(Enum):
    STOPPED = 'stopped'
    RUNNING = 'running'


class SnapshotBroadcaster:
    """Periodic sample-and-push loop."""

    def __init__(self, sampler, cache, registry, interval=DEFAULT_INTERVAL, idle_when_empty=False):
        """
        Args:
            sampler: object with sample(budget=None) -> Snapshot.
            cache: SnapshotCache receiving every successful snapshot.
            registry: SubscriptionRegistry to fan out to.
            interval: seconds between ticks, or a zero-argument callable
                returning it. A callable is re-read every tick.
            idle_when_empty: skip sampling on ticks with no subscribers.
        """
        self.sampler = sampler
        self.cache = cache
        self.registry = registry
        self.idle_when_empty = idle_when_empty
        self._interval = interval

        self._lock = threading.Lock()
        # Serializes ticks so sequence numbers reach subscribers in order
        self._cycle_lock = threading.Lock()
        self._state = BroadcasterState.STOPPED
        self._stop_event = None
        # Set to cut the pending wait short when the interval changes
        self._wake_event = None
        self._thread = None
        self._seq = 0
        self._tick_count = 0

    @property
    def state(self) -> BroadcasterState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is BroadcasterState.RUNNING

    @property
    def tick_count(self) -> int:
        """Number of completed cycles since construction."""
        return self._tick_count

    @property
    def interval(self) -> float:
        return float(self._interval() if callable(self._interval) else self._interval)

    def start(self, interval=None):
        """Start the timer thread, running the first cycle immediately."""
        with self._lock:
            if self._state is BroadcasterState.RUNNING:
                logger.info('Snapshot broadcaster is already running')
                return
            if interval is not None:
                self._interval = interval
            # Each run gets its own event so a stopped thread never sees a later start
            self._stop_event = threading.Event()
            self._wake_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event, self._wake_event),
                daemon=True,
                name='Snapshot Broadcaster',
            )
            self._state = BroadcasterState.RUNNING
            self._thread.start()
        logger.info(f"Snapshot broadcaster started (interval: {self.interval}s)")

    def stop(self):
        """Stop the timer. In-flight samples are abandoned, not awaited."""
        with self._lock:
            if self._state is BroadcasterState.STOPPED:
                return
            self._state = BroadcasterState.STOPPED
            self._stop_event.set()
            self._wake_event.set()
            self._wake_event = None
            self._thread = None
        logger.info('Snapshot broadcaster stopped')

    def subscribe(self, send, subscriber_id=None):
        """Register a subscriber and hand it the cached snapshot right away."""
        subscriber = self.registry.register(send, subscriber_id)
        seq, snapshot = self.cache.get_with_seq()
        if snapshot is not None:
            self._deliver(subscriber, seq, snapshot.to_payload())
        return subscriber

    def unsubscribe(self, handle):
        return self.registry.unregister(handle)

    def reschedule(self):
        """Re-read the interval now instead of after the pending wait."""
        with self._lock:
            if self._wake_event is not None:
                self._wake_event.set()

    def _run(self, stop_event, wake_event):
        next_tick = time.monotonic()
        while not stop_event.is_set():
            tick_started = next_tick
            self.run_cycle()
            while not stop_event.is_set():
                next_tick = tick_started + self.interval
                now = time.monotonic()
                if next_tick <= now:
                    # A slow tick or a shortened interval: skip the missed slots instead of bursting
                    next_tick = now
                    break
                if not wake_event.wait(next_tick - now):
                    break
                wake_event.clear()

    def run_cycle(self):
        """One tick: sample, cache and fan out. Never raises."""
        try:
            with self._cycle_lock:
                if self.idle_when_empty and len(self.registry) == 0:
                    return
                self._seq += 1
                seq = self._seq
                payload = self._sample(seq)
                self.registry.for_each(lambda subscriber: self._deliver(subscriber, seq, payload))
                self._tick_count += 1
        except Exception as e:
            logger.exception(f"Error in snapshot broadcaster: {e}")

    def _sample(self, seq):
        try:
            snapshot = self.sampler.sample(budget=self.interval)
        except SamplingError as e:
            logger.error(f"Sampling failed: {e}")
            return error_payload(str(e))
        self.cache.set(snapshot, seq)
        if snapshot.partial_failures:
            logger.info(f"Snapshot missing sources: {', '.join(sorted(snapshot.partial_failures))}")
        return snapshot.to_payload()

    def _deliver(self, subscriber, seq, payload):
        try:
            subscriber.deliver(seq, payload)
        except Exception as e:
            logger.info(f"Dropping subscriber {subscriber.id} after failed send: {e}")
            self.registry.unregister(subscriber)
