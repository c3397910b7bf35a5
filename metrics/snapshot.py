"""
Snapshot data model and its JSON wire format.

A Snapshot is built once by the sampler and never mutated afterwards. All
sequences are tuples so a cached snapshot can be handed to any number of
readers without copying.

The field names produced by to_payload() are consumed verbatim by the
dashboard frontend and must not change.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
import math

MB = 1024 ** 2
GB = 1024 ** 3


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def percent(part, whole) -> int:
    """Integer percentage of part in whole, 0 when whole is empty."""
    if not whole:
        return 0
    return round_half_up(part / whole * 100)


@dataclass(frozen=True)
class MemoryInfo:
    total_bytes: int
    free_bytes: int

    def __post_init__(self):
        if self.total_bytes <= 0:
            raise ValueError(f"total_bytes must be positive, got {self.total_bytes}")

    @property
    def used_bytes(self) -> int:
        return self.total_bytes - self.free_bytes

    @property
    def usage_percent(self) -> int:
        return percent(self.used_bytes, self.total_bytes)

    def to_payload(self) -> dict:
        # Megabytes, with used derived after rounding so total = used + free holds
        total = round_half_up(self.total_bytes / MB)
        free = round_half_up(self.free_bytes / MB)
        return {
            'total': total,
            'used': total - free,
            'free': free,
            'usagePercentage': self.usage_percent,
        }


@dataclass(frozen=True)
class ProcessInfo:
    name: str
    pid: int
    cpu_percent: float

    def to_payload(self) -> dict:
        return {'name': self.name, 'pid': self.pid, 'cpu_percent': self.cpu_percent}


@dataclass(frozen=True)
class CpuInfo:
    """CPU model and load.

    load_percent comes straight from the OS and is not clamped to [0, 100].
    """
    model_name: str
    logical_cores: int
    load_percent: float
    per_core_load: tuple = ()
    physical_cores: int | None = None
    speed_ghz: float | None = None
    top_processes: tuple = ()

    def to_payload(self) -> dict:
        return {
            'model': self.model_name,
            'cores': self.logical_cores,
            'physicalCores': self.physical_cores,
            'speed': self.speed_ghz,
            'loadAverage': self.load_percent,
            'coreUsage': list(self.per_core_load),
            'topProcesses': [p.to_payload() for p in self.top_processes],
        }


@dataclass(frozen=True)
class DiskInfo:
    filesystem_id: str
    type: str
    size_bytes: int
    used_bytes: int
    available_bytes: int

    @property
    def use_percent(self) -> int:
        return percent(self.used_bytes, self.size_bytes)

    def to_payload(self) -> dict:
        return {
            'fs': self.filesystem_id,
            'type': self.type,
            'size': self.size_bytes,
            'used': self.used_bytes,
            'available': self.available_bytes,
            'use': self.use_percent,
        }


@dataclass(frozen=True)
class NetworkInfo:
    interface_name: str
    rx_bytes_total: int
    tx_bytes_total: int
    rx_rate_recent: float | None = None
    tx_rate_recent: float | None = None

    def to_payload(self) -> dict:
        return {
            'interface': self.interface_name,
            'rx_bytes': self.rx_bytes_total,
            'tx_bytes': self.tx_bytes_total,
            'rx_sec': self.rx_rate_recent,
            'tx_sec': self.tx_rate_recent,
        }


@dataclass(frozen=True)
class DisplayInfo:
    model: str
    is_primary: bool
    connection_type: str
    resolution: str
    size_inches: float | None = None

    def to_payload(self) -> dict:
        return {
            'model': self.model,
            'main': self.is_primary,
            'connection': self.connection_type,
            'resolution': self.resolution,
            'size': self.size_inches,
        }


@dataclass(frozen=True)
class HostInfo:
    os_description: str
    hostname: str
    uptime_seconds: int
    mac_address: str
    ipv4_address: str


@dataclass(frozen=True)
class LocationInfo:
    city: str
    region: str
    country_code: str
    coordinates: str
    timezone: str
    postal: str | None = None

    def to_payload(self) -> dict:
        payload = {
            'city': self.city,
            'region': self.region,
            'country': self.country_code,
            'loc': self.coordinates,
            'timezone': self.timezone,
        }
        if self.postal:
            payload['postal'] = self.postal
        return payload


@dataclass(frozen=True)
class Snapshot:
    """One consistent read of all host metrics."""
    taken_at: float
    taken_at_monotonic: float
    memory: MemoryInfo | None = None
    cpu: CpuInfo | None = None
    disks: tuple = ()
    network: NetworkInfo | None = None
    displays: tuple = ()
    host: HostInfo | None = None
    location: LocationInfo | None = None
    partial_failures: frozenset = field(default_factory=frozenset)

    @property
    def display_count(self) -> int:
        return len(self.displays) or 1

    @property
    def timestamp(self) -> str:
        return datetime.fromtimestamp(self.taken_at, tz=timezone.utc).isoformat()

    def to_payload(self) -> dict:
        """Serialize to the dashboard JSON shape."""
        host = self.host
        return {
            'timestamp': self.timestamp,
            'monitors': self.display_count,
            'displayInfo': [d.to_payload() for d in self.displays],
            'ram': self.memory.to_payload() if self.memory else None,
            'cpu': self.cpu.to_payload() if self.cpu else None,
            'network': self.network.to_payload() if self.network else None,
            'disk': [d.to_payload() for d in self.disks],
            'operatingSystem': host.os_description if host else None,
            'uptime': host.uptime_seconds if host else None,
            'macAddress': host.mac_address if host else None,
            'hostName': host.hostname if host else None,
            'ipAddress': host.ipv4_address if host else None,
            'location': self.location.to_payload() if self.location else None,
            'partialFailures': sorted(self.partial_failures),
        }


def error_payload(message: str, error: str = 'sampling_failed') -> dict:
    """Payload sent in place of a snapshot when a whole sample failed."""
    return {'error': error, 'message': message}
