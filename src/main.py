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
from src.fm_admin.api.router import router as admin_router
from src.fm_common.database import async_session_factory, engine
from src.fm_common.errors import AppError
from src.fm_common.redis_client import close_redis, get_redis
from src.fm_common.response import error_response
from src.fm_gateway.middleware.request_log import RequestLogMiddleware, get_request_id
from src.fm_ledger.api.router import router as ledger_router
from src.fm_milestone.api.router import router as milestone_router
from src.fm_notification.application.dispatcher import OutboxDispatcher
from src.fm_notification.infrastructure.redis_sink import RedisNotificationSink
from src.fm_payout.infrastructure.http_provider import close_payout_provider
from src.fm_transaction_log.api.router import router as transaction_router
from src.fm_withdrawal.api.router import router as withdrawal_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, start the outbox dispatcher. Shutdown: stop and dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    redis = await get_redis()
    dispatcher = OutboxDispatcher(async_session_factory, RedisNotificationSink(redis))
    await dispatcher.start()
    app.state.outbox_dispatcher = dispatcher
    yield
    # Shutdown
    await dispatcher.stop()
    await close_payout_provider()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, request_id=get_request_id(request))
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(ledger_router, prefix="/api/v1")
app.include_router(transaction_router, prefix="/api/v1")
app.include_router(milestone_router, prefix="/api/v1")
app.include_router(withdrawal_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
