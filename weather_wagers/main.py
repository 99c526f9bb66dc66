"""
FastAPI application for Weather Wagers
REST API over line generation, wager placement, and resolution.
Generation and resolution are triggered by an external scheduler
hitting the POST endpoints; nothing runs on a timer in-process.
"""

from fastapi import FastAPI, Depends, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from contextlib import asynccontextmanager
from datetime import date, timedelta
from functools import lru_cache
from typing import List, Optional
import logging

from weather_wagers.core.market_config import MarketConfig
from weather_wagers.errors import WagerEngineError
from weather_wagers.models import get_db, init_db
from weather_wagers.services.geocode import NominatimGeocoder
from weather_wagers.services.ledger import place_wager
from weather_wagers.services.line_generator import (
    generate_daily_lines,
    generate_lines_for_location,
)
from weather_wagers.services.nws import NWSClient
from weather_wagers.services.queries import (
    lines_for_city_and_date,
    lines_for_date,
    pending_wagers,
    wager_history,
)
from weather_wagers.services.resolution import resolve_line, resolve_lines_for_date
from weather_wagers.schemas import (
    BatchResolutionResponse,
    DailyGenerationResponse,
    GenerateForLocationRequest,
    GenerationResponse,
    GeocodeResponse,
    LinesResponse,
    PlaceWagerRequest,
    PlaceWagerResponse,
    ResolutionResponse,
    WagerHistoryResponse,
)

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting Weather Wagers")
    init_db()
    yield
    logger.info("Shutting down Weather Wagers")


app = FastAPI(
    title="Weather Wagers",
    description="Daily weather betting lines priced from NWS forecasts",
    version="1.0",
    lifespan=lifespan,
)

# CORS (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# DEPENDENCIES (overridden in tests)
# ============================================================================

@lru_cache
def get_market_config() -> MarketConfig:
    return MarketConfig.from_env()


def get_weather_client() -> NWSClient:
    return NWSClient()


def get_geocoder() -> NominatimGeocoder:
    return NominatimGeocoder()


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Health check"""
    return {
        "app": "Weather Wagers",
        "version": "1.0",
        "status": "operational",
    }


@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint"""
    health = {"status": "healthy", "database": "connected"}

    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Health check database error: %s", e)
        health["status"] = "degraded"
        health["database"] = f"error: {str(e)}"

    return health


# ============================================================================
# LINES
# ============================================================================

@app.get("/api/lines/daily", response_model=LinesResponse)
def get_daily_lines(db: Session = Depends(get_db)):
    """Tomorrow's board across every city."""
    target = date.today() + timedelta(days=1)
    lines = lines_for_date(db, target)
    return {"date": target, "total_lines": len(lines), "lines": lines}


@app.get("/api/lines", response_model=LinesResponse)
def get_lines(
    city: Optional[str] = Query(default=None, min_length=1),
    target_date: Optional[date] = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
):
    """Lines for a date (default tomorrow), optionally narrowed to one city."""
    target = target_date or date.today() + timedelta(days=1)
    if city:
        lines = lines_for_city_and_date(db, city, target)
    else:
        lines = lines_for_date(db, target)
    return {"date": target, "total_lines": len(lines), "lines": lines}


@app.post("/api/lines/generate-daily", response_model=DailyGenerationResponse)
def trigger_daily_generation(
    db: Session = Depends(get_db),
    weather: NWSClient = Depends(get_weather_client),
    config: MarketConfig = Depends(get_market_config),
):
    """
    Generate tomorrow's lines for the configured cities.

    Cities that already have lines for tomorrow are skipped, so the
    external scheduler can retry safely.
    """
    target = date.today() + timedelta(days=1)
    todo = [c for c in config.cities if not lines_for_city_and_date(db, c.name, target)]
    skipped = len(config.cities) - len(todo)
    if skipped:
        logger.info("Skipping %d cities that already have lines for %s", skipped, target)

    generation = generate_daily_lines(db, weather, config=config, cities=todo)

    message = f"Generated {len(generation.lines)} lines for {generation.target_date}"
    if generation.failed_cities:
        message += f"; failed: {', '.join(generation.failed_cities)}"
    return {
        "message": message,
        "target_date": generation.target_date,
        "lines": generation.lines,
        "results": generation.results,
    }


@app.post("/api/lines/generate-for-location", response_model=GenerationResponse)
def trigger_location_generation(
    request: GenerateForLocationRequest,
    db: Session = Depends(get_db),
    weather: NWSClient = Depends(get_weather_client),
    config: MarketConfig = Depends(get_market_config),
):
    """Generate lines for any US city; returns existing lines if already generated."""
    target = request.target_date or date.today() + timedelta(days=1)

    existing = lines_for_city_and_date(db, request.city_name, target)
    if existing:
        return {
            "message": f"Lines already exist for {request.city_name} on {target}",
            "target_date": target,
            "lines": existing,
        }

    lines = generate_lines_for_location(
        db,
        weather,
        request.city_name,
        request.latitude,
        request.longitude,
        target_date=target,
        config=config,
    )
    return {
        "message": f"Generated {len(lines)} lines for {request.city_name} on {target}",
        "target_date": target,
        "lines": lines,
    }


@app.post("/api/lines/resolve-daily", response_model=BatchResolutionResponse)
def trigger_daily_resolution(
    target_date: Optional[date] = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    weather: NWSClient = Depends(get_weather_client),
    geocoder: NominatimGeocoder = Depends(get_geocoder),
    config: MarketConfig = Depends(get_market_config),
):
    """Resolve every pending line for a date (default today)."""
    target = target_date or date.today()
    batch = resolve_lines_for_date(db, target, geocoder, weather, config=config)
    return {
        "date": batch.target_date,
        "total_resolved": batch.total_resolved,
        "total_winners": batch.total_winners,
        "total_paid_out": batch.total_paid_out,
        "results": batch.results,
    }


@app.post("/api/lines/{line_id}/resolve", response_model=ResolutionResponse)
def trigger_line_resolution(
    line_id: int,
    db: Session = Depends(get_db),
    weather: NWSClient = Depends(get_weather_client),
    geocoder: NominatimGeocoder = Depends(get_geocoder),
    config: MarketConfig = Depends(get_market_config),
):
    """Resolve one line against the latest observation for its city."""
    return resolve_line(db, line_id, geocoder, weather, config=config)


# ============================================================================
# WAGERS
# ============================================================================

@app.post("/api/wagers", response_model=PlaceWagerResponse)
def create_wager(request: PlaceWagerRequest, db: Session = Depends(get_db)):
    """Place a wager; the balance debit and the wager record commit together."""
    receipt = place_wager(db, request.account_id, request.line_id, request.amount)
    return {
        "message": "Wager placed",
        "wager_id": receipt.wager_id,
        "line_id": receipt.line_id,
        "amount": receipt.amount,
        "potential_profit": receipt.potential_profit,
        "total_return": receipt.total_return,
        "new_balance": receipt.new_balance,
    }


@app.get("/api/accounts/{account_id}/wagers/pending", response_model=List[WagerHistoryResponse])
def get_pending_wagers(account_id: int, db: Session = Depends(get_db)):
    return [WagerHistoryResponse.model_validate(e) for e in pending_wagers(db, account_id)]


@app.get("/api/accounts/{account_id}/wagers/history", response_model=List[WagerHistoryResponse])
def get_wager_history(account_id: int, db: Session = Depends(get_db)):
    return [WagerHistoryResponse.model_validate(e) for e in wager_history(db, account_id)]


# ============================================================================
# CITIES
# ============================================================================

@app.get("/api/cities/geocode", response_model=GeocodeResponse)
def geocode_city(
    city: str = Query(..., min_length=1),
    geocoder: NominatimGeocoder = Depends(get_geocoder),
):
    """Resolve a city name to coordinates for generate-for-location."""
    return geocoder.geocode(city)


# ============================================================================
# ERROR HANDLING
# ============================================================================

@app.exception_handler(WagerEngineError)
async def wager_engine_exception_handler(request, exc: WagerEngineError):
    """Map expected engine failures to their status codes."""
    if exc.status_code >= 500:
        logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "type": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Catch-all exception handler"""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": type(exc).__name__}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
