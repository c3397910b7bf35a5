"""
Concurrent metric sampling.

MetricSampler runs every source at once on a shared thread pool (green
threads once eventlet has monkey patched threading), waits for each one up to
its own timeout, and assembles whatever came back into a Snapshot. A source
that raises or runs late is left out and named in partial_failures.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError

from .errors import SamplingError
from .location import FALLBACK_LOCATION, LocationReader
from .snapshot import Snapshot
from .sources import NetworkReader, read_cpu, read_disks, read_displays, read_host, read_memory

logger = logging.getLogger(__name__)

LOCAL_SOURCES = ('memory', 'cpu', 'disk', 'network', 'display', 'host')
LOCATION_SOURCE = 'location'

DEFAULT_TIMEOUTS = {
    'memory': 2.0,
    'cpu': 2.0,
    'disk': 2.0,
    'network': 2.0,
    'display': 3.0,
    'host': 2.0,
    LOCATION_SOURCE: 5.0,
}

# Snapshot field each source fills in
_SNAPSHOT_FIELDS = {
    'memory': 'memory',
    'cpu': 'cpu',
    'disk': 'disks',
    'network': 'network',
    'display': 'displays',
    'host': 'host',
}


def default_sources():
    """The host readers, keyed by source name."""
    return {
        'memory': read_memory,
        'cpu': read_cpu,
        'disk': read_disks,
        'network': NetworkReader(),
        'display': read_displays,
        'host': read_host,
    }


class MetricSampler:
    """Produces Snapshots from a set of independent sources."""

    def __init__(self, sources=None, location=None, timeouts=None, max_workers=None):
        """
        Args:
            sources: dict of source name -> zero-argument callable. Names must
                be among LOCAL_SOURCES. Defaults to the host readers.
            location: zero-argument callable returning a LocationInfo, or
                None for the ipinfo.io reader.
            timeouts: per-source timeout overrides in seconds.
            max_workers: thread pool size, defaults to two per source so a
                hung source cannot starve the next tick.
        """
        self.sources = dict(sources) if sources is not None else default_sources()
        unknown = set(self.sources) - set(LOCAL_SOURCES)
        if unknown:
            raise ValueError(f"Unknown metric sources: {sorted(unknown)}")

        self.location = location if location is not None else LocationReader()
        self.timeouts = dict(DEFAULT_TIMEOUTS)
        if timeouts:
            self.timeouts.update(timeouts)

        workers = max_workers or 2 * (len(self.sources) + 1)
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix='metric-source')
        self._lock = threading.Lock()
        self._closed = False

    def set_location_timeout(self, seconds):
        """Change the location lookup timeout at runtime."""
        if hasattr(self.location, 'timeout'):
            self.location.timeout = seconds
        # Leave the lookup room to hit its own timeout and fall back
        self.timeouts[LOCATION_SOURCE] = seconds + 1.0

    def sample(self, budget=None) -> Snapshot:
        """Read every source once and build a Snapshot.

        Args:
            budget: overall time limit in seconds for the whole sample. No
                source is waited on past it, whatever its own timeout.

        Raises:
            SamplingError: if no local source produced data.
        """
        with self._lock:
            if self._closed:
                raise SamplingError('sampler is closed')
            taken_at = time.time()
            started = time.monotonic()
            futures = {name: self._executor.submit(reader) for name, reader in self.sources.items()}
            location_future = self._executor.submit(self.location)

        fields = {}
        failures = set()
        for name, future in futures.items():
            try:
                value = future.result(timeout=self._remaining(name, started, budget))
            except FutureTimeoutError:
                future.cancel()
                logger.warning(f"Metric source '{name}' timed out after {self.timeouts.get(name)}s")
                failures.add(name)
                continue
            except Exception as e:
                logger.warning(f"Metric source '{name}' failed: {e}")
                failures.add(name)
                continue
            fields[_SNAPSHOT_FIELDS[name]] = value

        if not fields:
            raise SamplingError(
                f"No metric source could be read ({', '.join(sorted(failures))})",
                failures=failures,
            )

        try:
            location = location_future.result(timeout=self._remaining(LOCATION_SOURCE, started, budget))
        except FutureTimeoutError:
            location_future.cancel()
            logger.warning('Location lookup timed out, using fallback')
            location = FALLBACK_LOCATION
        except Exception as e:
            logger.warning(f"Location lookup failed, using fallback: {e}")
            location = FALLBACK_LOCATION

        if fields.get('disks') is None:
            fields.pop('disks', None)
        if fields.get('displays') is None:
            fields.pop('displays', None)

        return Snapshot(
            taken_at=taken_at,
            taken_at_monotonic=started,
            location=location or FALLBACK_LOCATION,
            partial_failures=frozenset(failures),
            **fields,
        )

    def _remaining(self, name, started, budget):
        limit = self.timeouts.get(name, DEFAULT_TIMEOUTS['memory'])
        if budget is not None:
            limit = min(limit, budget)
        return max(limit - (time.monotonic() - started), 0)

    def close(self):
        """Shut down the worker pool without waiting for running sources."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=False, cancel_futures=True)
