"""Test doubles for the metrics pipeline."""
import itertools
import threading
import time

from metrics import (
    CpuInfo,
    DiskInfo,
    DisplayInfo,
    FALLBACK_LOCATION,
    HostInfo,
    MemoryInfo,
    NetworkInfo,
    SamplingError,
    Snapshot,
)

GB = 1024 ** 3


def make_snapshot(taken_at=None, **overrides):
    """A fully populated Snapshot with round numbers."""
    now = time.time() if taken_at is None else taken_at
    fields = dict(
        taken_at=now,
        taken_at_monotonic=time.monotonic(),
        memory=MemoryInfo(total_bytes=8 * GB, free_bytes=2 * GB),
        cpu=CpuInfo(model_name='Test CPU', logical_cores=4, physical_cores=2,
                    speed_ghz=2.4, load_percent=12.5, per_core_load=(10.0, 15.0, 12.0, 13.0)),
        disks=(DiskInfo('/dev/sda1', 'ext4', 100 * GB, 40 * GB, 60 * GB),),
        network=NetworkInfo('eth0', 1000, 2000, 10.0, 20.0),
        displays=(DisplayInfo('HDMI-1', True, 'HDMI', '1920x1080', 24.0),),
        host=HostInfo('Linux 6.1.0', 'testhost', 3600, 'aa:bb:cc:dd:ee:ff', '192.168.1.20'),
        location=FALLBACK_LOCATION,
    )
    fields.update(overrides)
    return Snapshot(**fields)


class FakeSampler:
    """Sampler returning synthetic snapshots with strictly increasing timestamps.

    Set fail_next to make the following N calls raise SamplingError.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counter = itertools.count(1)
        self.calls = 0
        self.fail_next = 0
        self.budgets = []
        self.location_timeout = None

    def sample(self, budget=None):
        with self._lock:
            self.calls += 1
            self.budgets.append(budget)
            if self.fail_next:
                self.fail_next -= 1
                raise SamplingError('No metric source could be read (cpu, disk)')
            n = next(self._counter)
        return make_snapshot(taken_at=1_700_000_000 + n)

    def set_location_timeout(self, seconds):
        self.location_timeout = seconds


class RecordingSubscriber:
    """Send callable that records payloads, optionally failing."""

    def __init__(self, fail=False):
        self.payloads = []
        self.fail = fail
        self._lock = threading.Lock()

    def __call__(self, payload):
        if self.fail:
            raise ConnectionError('socket closed')
        with self._lock:
            self.payloads.append(payload)

    @property
    def snapshots(self):
        return [p for p in self.payloads if 'error' not in p]

    @property
    def errors(self):
        return [p for p in self.payloads if 'error' in p]
