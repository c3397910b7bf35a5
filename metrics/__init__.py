"""Host metric sampling, caching and subscriber tracking."""
from .errors import MetricsError, SamplingError, SourceError
from .snapshot import (
    Snapshot,
    MemoryInfo,
    CpuInfo,
    ProcessInfo,
    DiskInfo,
    NetworkInfo,
    DisplayInfo,
    HostInfo,
    LocationInfo,
    error_payload,
    round_half_up,
)
from .location import FALLBACK_LOCATION, LocationReader, lookup_location
from .sampler import MetricSampler, LOCAL_SOURCES
from .cache import SnapshotCache
from .registry import Subscriber, SubscriberState, SubscriptionRegistry
