"""Tests for IP geolocation lookup and its fallback."""
import http.client
import io
import json
import socket
import urllib.error
import urllib.request

import pytest

from metrics import location
from metrics.location import FALLBACK_LOCATION, build_lookup_url, lookup_location

IPINFO_BODY = {
    'ip': '103.149.12.123',
    'city': 'Hanoi',
    'region': 'Hanoi',
    'country': 'VN',
    'loc': '21.0245,105.8412',
    'org': 'AS131429 MOBIFONE Corporation',
    'postal': '100000',
    'timezone': 'Asia/Bangkok',
}


class FakeResponse(io.BytesIO):
    def __init__(self, body, status=200):
        super().__init__(body.encode('utf-8'))
        self.status = status
        self.headers = {}


def _urlopen_returning(body, status=200, seen=None):
    def urlopen(req, timeout=None):
        if seen is not None:
            seen.append((req.full_url, timeout))
        return FakeResponse(body, status)
    return urlopen


def _urlopen_raising(exc):
    def urlopen(req, timeout=None):
        raise exc
    return urlopen


def test_lookup_parses_ipinfo_body(monkeypatch):
    seen = []
    monkeypatch.setattr(urllib.request, 'urlopen', _urlopen_returning(json.dumps(IPINFO_BODY), seen=seen))

    result = lookup_location('103.149.12.123', timeout=2.0)

    assert result.city == 'Hanoi'
    assert result.country_code == 'VN'
    assert result.coordinates == '21.0245,105.8412'
    assert result.postal == '100000'
    assert seen == [('https://ipinfo.io/103.149.12.123/json', 2.0)]


@pytest.mark.parametrize('exc', [
    urllib.error.URLError('no route to host'),
    urllib.error.HTTPError('https://ipinfo.io', 429, 'Too Many Requests', {}, None),
    socket.timeout('timed out'),
    ConnectionResetError('reset'),
    http.client.IncompleteRead(b''),
    http.client.RemoteDisconnected('Remote end closed connection without response'),
])
def test_lookup_failure_returns_fallback(monkeypatch, exc):
    monkeypatch.setattr(urllib.request, 'urlopen', _urlopen_raising(exc))
    assert lookup_location('8.8.8.8') == FALLBACK_LOCATION


@pytest.mark.parametrize('body', ['not json', '[]', '{"ip": "8.8.8.8"}', '{"city": ""}'])
def test_malformed_body_returns_fallback(monkeypatch, body):
    monkeypatch.setattr(urllib.request, 'urlopen', _urlopen_returning(body))
    assert lookup_location('8.8.8.8') == FALLBACK_LOCATION


@pytest.mark.parametrize('status', [304, 500])
def test_non_2xx_returns_fallback(monkeypatch, status):
    monkeypatch.setattr(urllib.request, 'urlopen', _urlopen_returning(json.dumps(IPINFO_BODY), status=status))
    assert lookup_location('8.8.8.8') == FALLBACK_LOCATION


def test_fallback_location_values():
    payload = FALLBACK_LOCATION.to_payload()
    assert payload['city'] == 'Ho Chi Minh City'
    assert payload['country'] == 'VN'
    assert payload['timezone'] == 'Asia/Ho_Chi_Minh'


@pytest.mark.parametrize('ip, url', [
    ('8.8.8.8', 'https://ipinfo.io/8.8.8.8/json'),
    ('192.168.1.20', 'https://ipinfo.io/json'),
    ('127.0.0.1', 'https://ipinfo.io/json'),
    ('not-an-ip', 'https://ipinfo.io/json'),
])
def test_build_lookup_url(ip, url):
    assert build_lookup_url(ip) == url


def test_build_lookup_url_custom_base():
    assert build_lookup_url('8.8.8.8', 'http://localhost:9000/') == 'http://localhost:9000/8.8.8.8/json'


def test_reader_resolves_local_ip(monkeypatch):
    seen = []
    monkeypatch.setattr(location, 'get_primary_ipv4', lambda: '103.149.12.123')
    monkeypatch.setattr(urllib.request, 'urlopen', _urlopen_returning(json.dumps(IPINFO_BODY), seen=seen))

    reader = location.LocationReader(base_url='http://geo.test', timeout=1.5)
    assert reader().city == 'Hanoi'
    assert seen == [('http://geo.test/103.149.12.123/json', 1.5)]
