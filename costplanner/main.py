"""
Main FastAPI application bootstrap.
Loads the pricing catalog, configures middleware and includes routers.
"""
import logging

from fastapi import FastAPI

from costplanner.core.config import config
from costplanner.api.estimates import router as estimates_router
from costplanner.middleware.rate_limiter import RateLimitMiddleware
from costplanner.middleware.request_size_limiter import RequestSizeLimiterMiddleware
from costplanner.pricing.catalog import CatalogIntegrityError, load_catalog


logger = logging.getLogger(__name__)

# Validate configuration on startup
try:
    config.validate()
except ValueError as error:
    raise RuntimeError(f"Configuration error: {error}") from error

# Every estimate depends on the catalog, so a bad table stops startup
try:
    catalog = load_catalog()
except CatalogIntegrityError as error:
    raise RuntimeError(f"Pricing catalog error: {error}") from error

logger.info(
    "Serving estimates in %s for default region %s (pricing %s)",
    config.DEFAULT_CURRENCY,
    config.DEFAULT_REGION,
    catalog.version,
)


app = FastAPI(
    title="Cloud Cost Planner",
    description="Cost estimation, optimization advice and growth projections for AWS architectures",
)
app.state.catalog = catalog

app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestSizeLimiterMiddleware)

app.include_router(estimates_router)


@app.get("/health")
async def health() -> dict:
    """Liveness check reporting the loaded pricing version."""
    return {"status": "ok", "pricing_version": catalog.version}
