# shoplist/services/location_service.py
import ipaddress
import json

import redis
import requests
from redis.exceptions import RedisError

from shoplist.domain.schemas import LocationOut
from shoplist.utils.retry import http_retry, redis_retry
from shoplist.utils.settings import LOCATION_CACHE_TTL_SECONDS, LOCATION_LOOKUP_URL, REDIS_URL
from shoplist.utils.logging import get_logger

logger = get_logger(__name__)


class LocationLookupError(Exception):
    pass


def public_ip(host: str | None) -> str | None:
    """The host if it is a routable address, else None (lookup by caller's egress IP)."""
    if not host:
        return None
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return None
    return host if address.is_global else None


class LocationClient:
    """IP geolocation lookup (ipapi.co JSON API)."""

    def __init__(self, base_url: str | None = None, timeout: int = 3):
        self.base_url = (base_url or LOCATION_LOOKUP_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def lookup(self, ip: str | None = None) -> LocationOut:
        url = f"{self.base_url}/{ip}/json/" if ip else f"{self.base_url}/json/"
        logger.info(f"LocationClient GET {url}")

        resp = requests.get(url, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()

        if data.get("error"):
            raise LocationLookupError(data.get("reason") or "lookup rejected")
        return LocationOut(country_code=data.get("country_code"), currency=data.get("currency"))


class LocationCache:
    """Lookup results per IP in redis, expiring after ttl seconds."""

    def __init__(self, url: str | None = None, ttl: int = LOCATION_CACHE_TTL_SECONDS, client=None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl

    @staticmethod
    def _key(ip: str | None) -> str:
        return f"location:{ip or 'self'}"

    @redis_retry()
    def get(self, ip: str | None) -> LocationOut | None:
        raw = self.redis.get(self._key(ip))
        if raw is None:
            return None
        return LocationOut.model_validate(json.loads(raw))

    @redis_retry()
    def set(self, ip: str | None, location: LocationOut) -> None:
        self.redis.set(
            name=self._key(ip),
            value=location.model_dump_json(),
            ex=self.ttl,
        )


class LocationService:
    """Currency detection. The cache is optional: redis errors only cost a lookup."""

    def __init__(self, client: LocationClient, cache: LocationCache | None = None):
        self.client = client
        self.cache = cache

    def detect(self, host: str | None) -> LocationOut:
        ip = public_ip(host)

        if self.cache is not None:
            try:
                cached = self.cache.get(ip)
                if cached is not None:
                    return cached
            except RedisError as e:
                logger.warning(f"Location cache read failed: {e}")

        location = self.client.lookup(ip)

        if self.cache is not None:
            try:
                self.cache.set(ip, location)
            except RedisError as e:
                logger.warning(f"Location cache write failed: {e}")

        return location
