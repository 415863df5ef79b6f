"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import assets, auth, currencies, export, import_data, institutions, portfolios, transactions
from config import settings
from database import get_session_local, init_db
from logging_config import setup_logging
from services.currency_service import CurrencyService
from services.exceptions import (
    InvalidRecurrence,
    NoDataBefore,
    OverdraftSell,
    QuoteUnavailable,
    Unauthorized,
    UnknownCurrency,
    WalletError,
)

setup_logging()
logger = logging.getLogger(__name__)

# HTTP status for each domain error; subclasses are matched before WalletError
ERROR_STATUS = {
    InvalidRecurrence: 422,
    UnknownCurrency: 422,
    NoDataBefore: 404,
    OverdraftSell: 409,
    QuoteUnavailable: 503,
    Unauthorized: 401,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and seed the default currencies on startup."""
    init_db()
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        created = CurrencyService.seed_defaults(db)
        db.commit()
        if created:
            logger.info("Seeded %d default currencies", created)
    except Exception:
        db.rollback()
        logger.warning("Currency seeding failed on startup", exc_info=True)
    finally:
        db.close()
    yield


app = FastAPI(
    title="Wallet",
    description="Personal portfolio tracking with recurring transactions",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WalletError)
async def wallet_error_handler(request: Request, exc: WalletError):
    """Render domain errors as JSON with their context fields."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        400,
    )
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__, **exc.context()},
        headers=headers,
    )


# Include API routers
app.include_router(auth.router)
app.include_router(portfolios.router)
app.include_router(institutions.router)
app.include_router(transactions.router)
app.include_router(currencies.router)
app.include_router(assets.router)
app.include_router(export.router)
app.include_router(import_data.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
