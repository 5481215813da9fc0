from functools import lru_cache

import requests
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from shoplist.domain.schemas import LocationOut
from shoplist.services.location_service import (
    LocationCache,
    LocationClient,
    LocationLookupError,
    LocationService,
)
from shoplist.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["location"])


@lru_cache
def get_location_service() -> LocationService:
    return LocationService(LocationClient(), LocationCache())


def _client_host(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.get("/location", response_model=LocationOut)
def get_location(request: Request, service: LocationService = Depends(get_location_service)):
    """Country and currency of the caller, best effort."""
    try:
        return service.detect(_client_host(request))
    except (requests.RequestException, LocationLookupError, ValueError) as e:
        logger.error(f"Error fetching location: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch location data"})
