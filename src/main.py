"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.mc_admin.api.router import router as admin_router
from src.mc_common.database import engine
from src.mc_common.errors import AppError, InternalError, InvariantViolationError
from src.mc_common.redis_client import close_redis, get_redis
from src.mc_common.response import error_response
from src.mc_credit.api.router import router as credit_router
from src.mc_fees.api.router import router as fees_router
from src.mc_gateway.api.router import router as auth_router
from src.mc_gateway.middleware.rate_limit import RateLimitMiddleware
from src.mc_gateway.middleware.request_log import RequestLogMiddleware
from src.mc_ledger.api.router import router as ledger_router
from src.mc_loans.api.router import router as loans_router
from src.mc_marketplace.api.courier_router import router as courier_router
from src.mc_marketplace.api.router import router as marketplace_router
from src.mc_quotas.api.router import router as quotas_router

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis connections. Shutdown: dispose."""
    logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()
    yield
    # Shutdown
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version=APP_VERSION,
    lifespan=lifespan,
)


# Starlette runs the last-added middleware first: request id is set before rate limiting
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)


def _envelope(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, exc.reason)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(status_code=exc.http_status, content=resp.model_dump())


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, InvariantViolationError):
        logger.error("Invariant violation on %s %s: %s", request.method, request.url.path, exc.detail)
    return _envelope(request, exc)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _envelope(request, InternalError())


app.include_router(auth_router, prefix="/api/v1")
app.include_router(ledger_router, prefix="/api/v1")
app.include_router(credit_router, prefix="/api/v1")
app.include_router(fees_router, prefix="/api/v1")
app.include_router(quotas_router, prefix="/api/v1")
app.include_router(loans_router, prefix="/api/v1")
app.include_router(marketplace_router, prefix="/api/v1")
app.include_router(courier_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": APP_VERSION}
