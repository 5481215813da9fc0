"""
Unit tests for currency detection and its redis cache
"""
import fakeredis
import pytest
import requests
from redis.exceptions import ConnectionError as RedisConnectionError

from shoplist.domain.schemas import LocationOut
from shoplist.services import location_service
from shoplist.services.location_service import (
    LocationCache,
    LocationClient,
    LocationLookupError,
    LocationService,
    public_ip,
)


class FakeLocationClient:
    def __init__(self, location=None, error=None):
        self.location = location or LocationOut(country_code="IN", currency="INR")
        self.error = error
        self.calls = []

    def lookup(self, ip=None):
        self.calls.append(ip)
        if self.error:
            raise self.error
        return self.location


class BrokenRedis:
    def get(self, *args, **kwargs):
        raise RedisConnectionError("redis down")

    def set(self, *args, **kwargs):
        raise RedisConnectionError("redis down")


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def json(self):
        return self.payload


@pytest.fixture
def cache() -> LocationCache:
    return LocationCache(client=fakeredis.FakeRedis(decode_responses=True), ttl=60)


class TestPublicIp:

    @pytest.mark.parametrize("host", [None, "", "127.0.0.1", "10.0.0.7", "192.168.1.20", "::1", "testclient"])
    def test_local_hosts_are_dropped(self, host):
        assert public_ip(host) is None

    def test_routable_address_is_kept(self):
        assert public_ip("8.8.8.8") == "8.8.8.8"


class TestLocationService:

    def test_second_lookup_is_served_from_cache(self, cache):
        client = FakeLocationClient()
        service = LocationService(client, cache)

        first = service.detect("8.8.8.8")
        second = service.detect("8.8.8.8")

        assert first == second == LocationOut(country_code="IN", currency="INR")
        assert client.calls == ["8.8.8.8"]

    def test_cache_entry_expires(self, cache):
        LocationService(FakeLocationClient(), cache).detect("8.8.8.8")

        assert 0 < cache.redis.ttl("location:8.8.8.8") <= 60

    def test_private_hosts_share_the_self_entry(self, cache):
        client = FakeLocationClient()
        service = LocationService(client, cache)

        service.detect("127.0.0.1")
        service.detect("10.1.1.1")

        assert client.calls == [None]
        assert cache.redis.exists("location:self")

    def test_redis_outage_only_costs_a_lookup(self):
        client = FakeLocationClient()
        service = LocationService(client, LocationCache(client=BrokenRedis()))

        location = service.detect("8.8.8.8")

        assert location.currency == "INR"
        assert client.calls == ["8.8.8.8"]

    def test_lookup_errors_propagate(self, cache):
        service = LocationService(FakeLocationClient(error=LocationLookupError("Reserved IP Address")), cache)

        with pytest.raises(LocationLookupError):
            service.detect("8.8.8.8")


class TestLocationClient:

    def test_parses_country_and_currency(self, monkeypatch):
        urls = []

        def fake_get(url, timeout):
            urls.append(url)
            return FakeResponse({"country_code": "DE", "currency": "EUR", "city": "Berlin"})

        monkeypatch.setattr(location_service.requests, "get", fake_get)

        location = LocationClient("https://geo.example").lookup("8.8.8.8")

        assert urls == ["https://geo.example/8.8.8.8/json/"]
        assert location == LocationOut(country_code="DE", currency="EUR")

    def test_without_ip_looks_up_the_caller(self, monkeypatch):
        urls = []

        def fake_get(url, timeout):
            urls.append(url)
            return FakeResponse({"country_code": "US", "currency": "USD"})

        monkeypatch.setattr(location_service.requests, "get", fake_get)

        LocationClient("https://geo.example/").lookup()

        assert urls == ["https://geo.example/json/"]

    def test_error_body_raises(self, monkeypatch):
        monkeypatch.setattr(
            location_service.requests,
            "get",
            lambda url, timeout: FakeResponse({"error": True, "reason": "RateLimited"}),
        )

        with pytest.raises(LocationLookupError, match="RateLimited"):
            LocationClient("https://geo.example").lookup("8.8.8.8")
