import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load .env before the route modules import, since app.security reads its limits at import time.
load_dotenv(override=True)

from fastapi import FastAPI, Request  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from app.routes import lookup, subscriptions  # noqa: E402
from core.database import init_db  # noqa: E402
from core.ebird import EBIRD_API_BASE, EBirdClient  # noqa: E402
from core.geocode import LocationLookup  # noqa: E402
from core.taxonomy import SpeciesCatalog  # noqa: E402


def _allowed_origins():
    raw = os.getenv("ALLOWED_ORIGINS") or "http://localhost:5173"
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()

    api_key = os.getenv("EBIRD_API_KEY", "")
    if api_key:
        client = EBirdClient(
            api_key,
            base_url=os.getenv("EBIRD_API_BASE", EBIRD_API_BASE),
            timeout=float(os.getenv("EBIRD_TIMEOUT_SECONDS", "20")),
        )
        app.state.ebird_client = client
        app.state.species_catalog = SpeciesCatalog(client.fetch_taxonomy)
    else:
        app.state.ebird_client = None
        app.state.species_catalog = None
    app.state.location_lookup = LocationLookup(contact_email=os.getenv("OSM_CONTACT_EMAIL", ""))
    yield


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type"],
)

app.include_router(subscriptions.router)
app.include_router(lookup.router)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'self'")
    return response
