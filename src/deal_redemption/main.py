# src/deal_redemption/main.py
"""Main entry point for the deal redemption service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from deal_redemption.api.v1 import claims_router, deals_router, vendors_router
from deal_redemption.core.errors import RateLimitedError, RedemptionError
from deal_redemption.core.settings import settings

logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Claim, in-store PIN verification and settlement for merchant deals",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(deals_router, prefix="/api/v1")
app.include_router(claims_router, prefix="/api/v1")
app.include_router(vendors_router, prefix="/api/v1")


@app.exception_handler(RedemptionError)
async def redemption_error_handler(request: Request, exc: RedemptionError) -> JSONResponse:
    """Render engine failures as typed error payloads."""
    headers: dict[str, str] = {}
    if isinstance(exc, RateLimitedError):
        headers["Retry-After"] = str(exc.retry_after)
    logger.debug("%s %s failed with %s", request.method, request.url.path, exc.kind.value)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok", "version": settings.app_version}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("deal_redemption.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
