"""
Crypto Tracker - Market data API
Proxies CoinGecko (primary) and Binance (fallback) through a tiered in-process cache
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from cryptotracker.cache import CacheResult, Provenance
from cryptotracker.errors import AllProvidersFailedError, InvalidRequestError, NotFoundError
from cryptotracker.market_service import MarketDataService, create_market_service
from cryptotracker.schemas import CacheStats, HealthStatus, InvalidationResult, ProviderHealth

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("api")

# Version tracking
APP_VERSION = "v0.3.0"
APP_NAME = "Crypto Tracker"


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = create_market_service(settings)
    service.cache.start_sweeper(settings.cache_sweep_interval_seconds)
    app.state.market_service = service
    logger.info(f"{APP_NAME} {APP_VERSION} started")
    try:
        yield
    finally:
        service.cache.shutdown()


app = FastAPI(
    title=APP_NAME,
    description="Cryptocurrency market data with multi-source fallback and caching",
    version=APP_VERSION,
    lifespan=lifespan,
)


def get_market_service(request: Request) -> MarketDataService:
    """The process-wide service created at startup."""
    return request.app.state.market_service


def cached_response(result: CacheResult, content=None) -> JSONResponse:
    """JSON response with X-Cache / X-Data-Source / Cache-Control headers."""
    return JSONResponse(
        content=result.data if content is None else content,
        headers=result.headers(),
    )


# ===== ERROR HANDLING =====

@app.exception_handler(AllProvidersFailedError)
async def all_providers_failed_handler(request: Request, exc: AllProvidersFailedError):
    logger.error(f"{request.url.path}: {exc} (attempts={exc.attempt_count})")
    if exc.rate_limited:
        retry_after = getattr(exc.last_error, "retry_after", None) or 30
        return JSONResponse(
            status_code=429,
            content={
                "error": "Rate limit exceeded. Please try again in a moment.",
                "details": str(exc),
            },
            headers={"Retry-After": str(retry_after)},
        )
    return JSONResponse(
        status_code=500,
        content={"error": "Failed to fetch data from upstream providers", "details": str(exc)},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": "Not found", "details": str(exc)})


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(TimeoutError)
async def timeout_handler(request: Request, exc: TimeoutError):
    logger.error(f"{request.url.path}: {exc}")
    return JSONResponse(
        status_code=504,
        content={"error": "Upstream request timed out", "details": str(exc)},
    )


# ===== SERVICE =====

@app.get("/health", response_model=HealthStatus)
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "name": APP_NAME, "version": APP_VERSION}


@app.get("/cache/stats", response_model=CacheStats)
def cache_stats(service: MarketDataService = Depends(get_market_service)):
    """Get cache statistics."""
    return service.cache.stats()


@app.delete("/cache", response_model=InvalidationResult)
def invalidate_cache(
    key: Optional[str] = Query(None, description="Exact cache key to drop"),
    pattern: Optional[str] = Query(None, description="Regular expression matched against keys"),
    service: MarketDataService = Depends(get_market_service),
):
    """Invalidate one key, every key matching a pattern, or (no params) everything."""
    if key:
        return {"removed": int(service.cache.invalidate(key))}
    if pattern:
        return {"removed": service.cache.invalidate_pattern(pattern)}
    return {"removed": service.cache.clear()}


# ===== COINS =====

@app.get("/api/coins/health", response_model=ProviderHealth)
def provider_health(service: MarketDataService = Depends(get_market_service)):
    """Report which upstream providers are reachable."""
    health = service.provider_health()
    coingecko = health.get("coingecko", False)
    binance = health.get("binance", False)
    if coingecko:
        message = "All services operational"
    elif binance:
        message = "Using Binance fallback - CoinGecko unavailable"
    else:
        message = "All external services unavailable - using cache"
    return {
        "status": "ok",
        "services": {
            provider_id: {"status": "healthy" if ok else "degraded", "available": ok}
            for provider_id, ok in health.items()
        },
        "fallbackEnabled": len(health) > 1,
        "message": message,
    }


@app.get("/api/coins/global")
def global_stats(service: MarketDataService = Depends(get_market_service)):
    """Global market statistics."""
    return cached_response(service.global_stats())


@app.get("/api/coins/trending")
def trending(service: MarketDataService = Depends(get_market_service)):
    """Trending coins."""
    return cached_response(service.trending())


@app.get("/api/coins/chart")
def market_chart(
    coinId: str = Query(..., description="CoinGecko coin ID"),
    days: int = Query(default=30, description="Day range"),
    service: MarketDataService = Depends(get_market_service),
):
    """Price / market cap / volume series for a coin."""
    return cached_response(service.market_chart(coinId, days))


@app.get("/api/coins/market")
def market_listing(
    page: int = Query(default=1),
    per_page: int = Query(default=20),
    service: MarketDataService = Depends(get_market_service),
):
    """Coins ordered by market cap."""
    return cached_response(service.markets(page, per_page))


@app.get("/api/coins/{coin_id}")
def coin_detail(coin_id: str, service: MarketDataService = Depends(get_market_service)):
    """Coin details with market data."""
    result = service.coin_detail(coin_id)
    content = dict(result.data)
    content["source"] = result.source
    return cached_response(result, content)


# ===== PRICES =====

@app.get("/api/prices")
def batch_prices(
    ids: str = Query(..., description="Comma separated coin IDs"),
    service: MarketDataService = Depends(get_market_service),
):
    """USD prices for a batch of coins."""
    result = service.prices(ids.split(","))
    return cached_response(result, {
        "prices": result.data,
        "cached": result.provenance != Provenance.MISS,
        "stale": result.provenance in (Provenance.STALE, Provenance.ERROR_STALE),
        "source": result.source,
    })


@app.get("/api/convert")
def convert(
    from_id: str = Query(..., alias="from"),
    to_id: str = Query(..., alias="to"),
    service: MarketDataService = Depends(get_market_service),
):
    """Conversion rate between two coins."""
    conversion = service.conversion(from_id, to_id)
    result = conversion.pop("result")
    if result is None:
        return {**conversion, "cached": False}
    conversion["cached"] = result.provenance != Provenance.MISS
    if result.provenance in (Provenance.STALE, Provenance.ERROR_STALE):
        conversion["stale"] = True
    return cached_response(result, conversion)
