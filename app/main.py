import logging
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import Settings, get_settings
from app.core.db import Database
from app.core.errors import CredentialError, PaywallError
from app.core.logging import setup_logging
from app.core.retry import RetryPolicy
from app.core.storage import LocalStorage
from app.modules.access.service import CredentialService
from app.modules.content import models as content_models  # noqa: F401
from app.modules.content.router import router as content_router
from app.modules.ledger.client import LedgerClient
from app.modules.payments import models as payment_models  # noqa: F401
from app.modules.payments.router import router as payments_router
from app.modules.payments.service import PaymentVerifier
from app.modules.payments.verifier import build_strategy
from app.modules.worker.runner import ExpirySweeper

logger = logging.getLogger(__name__)

def create_app(
    settings: Optional[Settings] = None,
    ledger_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_V1_STR}/openapi.json"
    )

    # Services live on app.state for the lifetime of the process
    app.state.settings = settings
    app.state.database = Database(settings.async_database_url)
    app.state.ledger = LedgerClient(
        settings.SOLANA_RPC_ENDPOINT,
        commitment=settings.SOLANA_COMMITMENT,
        timeout=settings.LEDGER_TIMEOUT_SECONDS,
        transport=ledger_transport,
    )
    app.state.verifier = PaymentVerifier(build_strategy(settings, app.state.ledger))
    app.state.credentials = CredentialService(
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        default_ttl_seconds=settings.ACCESS_TOKEN_TTL_SECONDS,
    )
    app.state.retry_policy = RetryPolicy(
        max_attempts=settings.STORAGE_RETRY_ATTEMPTS,
        base_delay=settings.STORAGE_RETRY_BASE_DELAY,
        multiplier=settings.STORAGE_RETRY_MULTIPLIER,
    )
    app.state.storage = LocalStorage(Path(settings.UPLOAD_DIR))
    app.state.sweeper = ExpirySweeper(app.state.database, settings.EXPIRY_SWEEP_INTERVAL_SECONDS)

    @app.on_event("startup")
    async def startup_event():
        await startup(app)

    @app.on_event("shutdown")
    async def shutdown_event():
        await shutdown(app)

    @app.exception_handler(CredentialError)
    async def credential_error_handler(request: Request, exc: CredentialError):
        # Clients never learn why a credential was refused
        logger.info(f"[Access] Denied {request.url.path}: {type(exc).__name__}")
        return JSONResponse(status_code=403, content={"error": "access_denied", "message": "Access denied"})

    @app.exception_handler(PaywallError)
    async def paywall_error_handler(request: Request, exc: PaywallError):
        if exc.http_status >= 500:
            logger.error(f"[API] {request.method} {request.url.path} failed: {exc.code}: {exc.message}")
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.get("/")
    def root():
        return {"message": f"Welcome to {settings.PROJECT_NAME} API", "docs": "/docs"}

    @app.get("/health")
    async def health():
        db_ok = await app.state.database.health_check()
        body = {
            "status": "ok" if db_ok else "degraded",
            "database": "ok" if db_ok else "unavailable",
            "verification_mode": settings.VERIFICATION_MODE,
            "network": settings.PAYMENT_NETWORK,
        }
        return JSONResponse(status_code=200 if db_ok else 503, content=body)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(content_router, prefix=f"{settings.API_V1_STR}/content", tags=["content"])
    app.include_router(payments_router, prefix=f"{settings.API_V1_STR}/payments", tags=["payments"])

    return app

async def startup(app: FastAPI):
    settings: Settings = app.state.settings
    await app.state.database.init()
    if settings.ENVIRONMENT != "production":
        await app.state.database.create_all()
    await app.state.sweeper.start()
    logger.info(f"[Startup] {settings.PROJECT_NAME} ready ({settings.ENVIRONMENT}, {settings.VERIFICATION_MODE} verification)")

async def shutdown(app: FastAPI):
    await app.state.sweeper.stop()
    await app.state.ledger.close()
    await app.state.database.close()
