"""
Readers for the individual metric sources.

Each reader returns one piece of a Snapshot or raises. The sampler decides
what a failure means; readers only log details that would otherwise be lost.
"""
import ipaddress
import logging
import platform
import re
import socket
import threading
import time

import psutil

from utils.subprocess_helper import run as subprocess_run
from .errors import SourceError
from .snapshot import (
    CpuInfo,
    DiskInfo,
    DisplayInfo,
    HostInfo,
    MemoryInfo,
    NetworkInfo,
    ProcessInfo,
    round_half_up,
)

logger = logging.getLogger(__name__)

LOOPBACK_IPV4 = '127.0.0.1'
NULL_MAC = '00:00:00:00:00:00'
MM_PER_INCH = 25.4

# Cache for CPU model name, it does not change while we run
_cpu_model_cache = None


def primary_ipv4_interface():
    """Return (interface_name, address) of the first non-loopback IPv4 address.

    Returns None when the host only has loopback addresses.
    """
    for name, addrs in psutil.net_if_addrs().items():
        for addr in addrs:
            if addr.family != socket.AF_INET:
                continue
            try:
                if ipaddress.ip_address(addr.address).is_loopback:
                    continue
            except ValueError:
                continue
            return name, addr.address
    return None


def get_primary_ipv4() -> str:
    """Outbound-facing IPv4 address, or 127.0.0.1 if there is none."""
    found = primary_ipv4_interface()
    return found[1] if found else LOOPBACK_IPV4


def read_memory() -> MemoryInfo:
    """Total and available memory in bytes."""
    mem = psutil.virtual_memory()
    return MemoryInfo(total_bytes=mem.total, free_bytes=mem.available)


def get_cpu_model() -> str:
    """CPU model name from /proc/cpuinfo, falling back to platform.processor()."""
    global _cpu_model_cache
    if _cpu_model_cache:
        return _cpu_model_cache

    model = ''
    try:
        with open('/proc/cpuinfo', 'r') as f:
            for line in f:
                # x86 uses "model name", ARM boards usually only have "Model"
                key, _, value = line.partition(':')
                if key.strip() in ('model name', 'Model') and value.strip():
                    model = value.strip()
                    break
    except OSError:
        pass

    _cpu_model_cache = model or platform.processor() or platform.machine() or 'Unknown'
    return _cpu_model_cache


def get_top_cpu_processes(n=5):
    """Get top N processes by CPU usage using ps (non-blocking).

    Returns an empty list if ps is unavailable; top processes are a detail of
    the cpu source, not a source of their own.
    """
    try:
        result = subprocess_run(
            ['ps', '-eo', 'pid,pcpu,comm', '--sort=-pcpu', '--no-headers'],
            capture_output=True,
            text=True,
            timeout=2
        )
        if result.returncode != 0:
            return []

        processes = []
        for line in result.stdout.strip().split('\n')[:n]:
            if not line.strip():
                continue
            parts = line.split(None, 2)
            if len(parts) >= 3:
                pid, cpu, name = parts
                processes.append(ProcessInfo(name=name, pid=int(pid), cpu_percent=round(float(cpu), 1)))
        return processes
    except (OSError, ValueError) as e:
        logger.debug(f"Could not list top CPU processes: {e}")
        return []


def read_cpu() -> CpuInfo:
    """CPU model, core counts, clock speed and current load."""
    # interval=None returns usage since the previous call, so it never blocks
    load = psutil.cpu_percent(interval=None)
    per_core = psutil.cpu_percent(interval=None, percpu=True)

    speed = None
    try:
        freq = psutil.cpu_freq()
        if freq and freq.current:
            speed = round(freq.current / 1000, 2)
    except (OSError, NotImplementedError):
        pass

    return CpuInfo(
        model_name=get_cpu_model(),
        logical_cores=psutil.cpu_count() or len(per_core) or 1,
        physical_cores=psutil.cpu_count(logical=False),
        speed_ghz=speed,
        load_percent=load,
        per_core_load=tuple(per_core),
        top_processes=tuple(get_top_cpu_processes(5)),
    )


def read_disks() -> tuple:
    """Usage for every mounted physical partition.

    Partitions that cannot be stat'ed (permissions, stale mounts) are skipped.
    """
    disks = []
    seen = set()
    for part in psutil.disk_partitions(all=False):
        if part.device in seen:
            continue
        try:
            usage = psutil.disk_usage(part.mountpoint)
        except OSError as e:
            logger.debug(f"Skipping partition {part.mountpoint}: {e}")
            continue
        seen.add(part.device)
        disks.append(DiskInfo(
            filesystem_id=part.device,
            type=part.fstype,
            size_bytes=usage.total,
            used_bytes=usage.used,
            available_bytes=usage.free,
        ))
    return tuple(disks)


class NetworkReader:
    """Reads byte counters for the primary interface and derives rates.

    Rates are computed against the previous reading of the same interface, so
    the first reading after startup (or after the interface changes) has no
    rate.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._last = None  # (interface, clock time, rx, tx)

    def __call__(self):
        found = primary_ipv4_interface()
        if not found:
            return None
        interface = found[0]

        counters = psutil.net_io_counters(pernic=True).get(interface)
        if counters is None:
            raise SourceError('network', f"no counters for interface {interface}")

        now = self._clock()
        rx, tx = counters.bytes_recv, counters.bytes_sent
        rx_rate = tx_rate = None
        with self._lock:
            if self._last and self._last[0] == interface:
                elapsed = now - self._last[1]
                if elapsed > 0:
                    rx_rate = round(max(rx - self._last[2], 0) / elapsed, 2)
                    tx_rate = round(max(tx - self._last[3], 0) / elapsed, 2)
            self._last = (interface, now, rx, tx)

        return NetworkInfo(
            interface_name=interface,
            rx_bytes_total=rx,
            tx_bytes_total=tx,
            rx_rate_recent=rx_rate,
            tx_rate_recent=tx_rate,
        )


# e.g. "HDMI-1 connected primary 1920x1080+0+0 (normal left ...) 527mm x 296mm"
_XRANDR_OUTPUT = re.compile(
    r'^(?P<name>\S+) connected(?P<primary> primary)?'
    r'(?: (?P<width>\d+)x(?P<height>\d+)\+\d+\+\d+)?'
    r'.*?(?:(?P<mm_w>\d+)mm x (?P<mm_h>\d+)mm)?\s*$'
)

_CONNECTION_TYPES = (
    ('eDP', 'Internal'),
    ('LVDS', 'Internal'),
    ('DSI', 'Internal'),
    ('HDMI', 'HDMI'),
    ('DP', 'DisplayPort'),
    ('DisplayPort', 'DisplayPort'),
    ('DVI', 'DVI'),
    ('VGA', 'VGA'),
)


def _connection_type(output_name):
    for prefix, kind in _CONNECTION_TYPES:
        if output_name.startswith(prefix):
            return kind
    return output_name.split('-')[0] or 'Unknown'


def parse_xrandr(text) -> tuple:
    """Parse `xrandr --query` output into DisplayInfo entries."""
    displays = []
    for line in text.splitlines():
        match = _XRANDR_OUTPUT.match(line)
        if not match:
            continue
        name = match.group('name')
        resolution = ''
        if match.group('width'):
            resolution = f"{match.group('width')}x{match.group('height')}"
        size = None
        if match.group('mm_w') and match.group('mm_h'):
            mm_w, mm_h = int(match.group('mm_w')), int(match.group('mm_h'))
            if mm_w and mm_h:
                size = round((mm_w ** 2 + mm_h ** 2) ** 0.5 / MM_PER_INCH, 1)
        displays.append(DisplayInfo(
            model=name,
            is_primary=bool(match.group('primary')),
            connection_type=_connection_type(name),
            resolution=resolution,
            size_inches=size,
        ))

    # xrandr only flags a primary output when one was configured
    if displays and not any(d.is_primary for d in displays):
        first = displays[0]
        displays[0] = DisplayInfo(first.model, True, first.connection_type, first.resolution, first.size_inches)
    return tuple(displays)


def read_displays() -> tuple:
    """Connected displays as reported by xrandr."""
    try:
        result = subprocess_run(
            ['xrandr', '--query'],
            capture_output=True,
            text=True,
            timeout=2
        )
    except (OSError, ValueError) as e:
        raise SourceError('display', f"xrandr unavailable: {e}") from e
    if result.returncode != 0:
        raise SourceError('display', f"xrandr exited with {result.returncode}: {result.stderr.strip()}")
    return parse_xrandr(result.stdout)


def get_mac_address(interface) -> str:
    """MAC address of the given interface, or all zeros if unknown."""
    if interface is None:
        return NULL_MAC
    for addr in psutil.net_if_addrs().get(interface, []):
        if addr.family == psutil.AF_LINK and addr.address:
            return addr.address.replace('-', ':').lower()
    return NULL_MAC


def read_host() -> HostInfo:
    """OS description, hostname, uptime and primary addresses."""
    found = primary_ipv4_interface()
    interface, ipv4 = found if found else (None, LOOPBACK_IPV4)
    return HostInfo(
        os_description=f"{platform.system()} {platform.release()}",
        hostname=socket.gethostname(),
        uptime_seconds=round_half_up(time.time() - psutil.boot_time()),
        mac_address=get_mac_address(interface),
        ipv4_address=ipv4,
    )
