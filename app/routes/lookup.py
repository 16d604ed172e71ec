"""
Read-only lookups backing the search page: species, places, recent sightings.
"""
import logging

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from core.errors import FetchError, LocationLookupError

router = APIRouter()
log = logging.getLogger(__name__)


def _ebird_unavailable() -> JSONResponse:
    return JSONResponse({"error": "eBird API key is not configured"}, status_code=503)


@router.get("/api/species")
async def search_species(request: Request, q: str = "", limit: int = Query(5, ge=1, le=40)):
    catalog = request.app.state.species_catalog
    if catalog is None:
        return _ebird_unavailable()
    try:
        matches = await catalog.search(q, max_results=limit)
    except (FetchError, ValueError) as exc:
        log.error("Species catalog unavailable", extra={"error": str(exc)})
        return JSONResponse({"error": "Unable to load the eBird species catalog"}, status_code=502)
    return [m.to_json() for m in matches]


@router.get("/api/locations")
async def search_locations(request: Request, q: str = "", limit: int = Query(5, ge=1, le=10)):
    try:
        results = await request.app.state.location_lookup.search(q, limit=limit)
    except LocationLookupError as exc:
        status = 503 if exc.rate_limited else 502
        return JSONResponse({"error": str(exc)}, status_code=status)
    return [r.to_json() for r in results]


@router.get("/api/sightings")
async def recent_sightings(
    request: Request,
    speciesCode: str = Query(..., min_length=2),
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radiusMiles: float = Query(50, gt=0, le=200),
    lookBackDays: int = Query(7, gt=0, le=30),
):
    client = request.app.state.ebird_client
    if client is None:
        return _ebird_unavailable()
    try:
        observations = await client.fetch_recent_observations(
            speciesCode, lat, lng, radiusMiles, lookBackDays, max_results=100
        )
    except FetchError as exc:
        log.warning("Sightings lookup failed", extra={"species": speciesCode, "error": str(exc)})
        return JSONResponse({"error": "Unable to load recent sightings from eBird"}, status_code=502)
    return [o.to_json() for o in observations]
