"""
IP geolocation lookup.

The location field always degrades to a fixed default instead of going
missing: any lookup failure returns FALLBACK_LOCATION and is only logged.
"""
import http.client
import ipaddress
import json
import logging
import urllib.error
import urllib.request

from .snapshot import LocationInfo
from .sources import get_primary_ipv4

logger = logging.getLogger(__name__)

DEFAULT_IPINFO_URL = 'https://ipinfo.io'
DEFAULT_LOOKUP_TIMEOUT = 4.0

FALLBACK_LOCATION = LocationInfo(
    city='Ho Chi Minh City',
    region='Ho Chi Minh',
    country_code='VN',
    coordinates='10.8231,106.6297',
    timezone='Asia/Ho_Chi_Minh',
    postal='70000',
)


def build_lookup_url(ip, base_url=DEFAULT_IPINFO_URL):
    """URL for looking up an address.

    Private and loopback addresses cannot be geolocated, so for those the
    service is asked about the caller's public address instead.
    """
    base_url = base_url.rstrip('/')
    try:
        addr = ipaddress.ip_address(ip)
        if addr.is_private or addr.is_loopback or addr.is_link_local:
            return f"{base_url}/json"
    except ValueError:
        return f"{base_url}/json"
    return f"{base_url}/{ip}/json"


def parse_location(body) -> LocationInfo:
    """Build a LocationInfo from an ipinfo-style JSON body.

    Raises ValueError if the body is not a usable location.
    """
    data = json.loads(body)
    if not isinstance(data, dict) or not data.get('city'):
        raise ValueError('response has no city')
    return LocationInfo(
        city=data['city'],
        region=data.get('region', ''),
        country_code=data.get('country', ''),
        coordinates=data.get('loc', ''),
        timezone=data.get('timezone', ''),
        postal=data.get('postal') or None,
    )


def lookup_location(ip=None, timeout=DEFAULT_LOOKUP_TIMEOUT, base_url=DEFAULT_IPINFO_URL) -> LocationInfo:
    """Geolocate an IPv4 address, falling back to FALLBACK_LOCATION on any failure."""
    if ip is None:
        ip = get_primary_ipv4()
    url = build_lookup_url(ip, base_url)

    try:
        req = urllib.request.Request(url, headers={'Accept': 'application/json', 'User-Agent': 'device-monitor'})
        with urllib.request.urlopen(req, timeout=timeout) as response:
            if not 200 <= response.status < 300:
                raise urllib.error.HTTPError(url, response.status, 'non-2xx response', response.headers, None)
            return parse_location(response.read().decode('utf-8'))
    except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
        # URLError covers HTTPError; HTTPException covers truncated or garbled
        # responses; OSError covers socket timeouts and resets;
        # ValueError covers malformed JSON and bodies without a city
        logger.warning(f"Location lookup for {ip} failed, using fallback: {e}")
        return FALLBACK_LOCATION


class LocationReader:
    """Callable location source with its settings bound."""

    def __init__(self, base_url=DEFAULT_IPINFO_URL, timeout=DEFAULT_LOOKUP_TIMEOUT):
        self.base_url = base_url
        self.timeout = timeout

    def __call__(self) -> LocationInfo:
        return lookup_location(timeout=self.timeout, base_url=self.base_url)
