"""Main FastAPI application."""
import logging
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from urlcoin.api.routes import account, admin, auth, market, ranking, trades
from urlcoin.core.database import init_db
from urlcoin.core.config import get_settings
from urlcoin.core.logging_config import setup_logging
from urlcoin.services.coin_catalog import seed_market
from urlcoin.services.document_store import WriteConflictError, get_document_store
from urlcoin.services.identity import ensure_default_admin
from urlcoin.services.scheduler import market_scheduler

# Configure logging
setup_logging()
logger = logging.getLogger(__name__)

settings = get_settings()

# Create FastAPI app
# Swagger/ReDoc는 enable_docs 설정에 따라 활성화/비활성화
app = FastAPI(
    title="URL COIN",
    description="Simulated coin market game with scheduled prices, trading and daily rankings",
    version="0.1.0",
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
    openapi_url="/openapi.json" if settings.enable_docs else None
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _write_conflict_handler(request: Request, exc: WriteConflictError):
    logger.info(f"Write conflict on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Document changed concurrently; retry"}
    )


async def _store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Document store failure on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Document store unavailable"}
    )


app.add_exception_handler(WriteConflictError, _write_conflict_handler)
app.add_exception_handler(SQLAlchemyError, _store_error_handler)

# Include API routers
app.include_router(auth.router)
app.include_router(account.router)
app.include_router(market.router)
app.include_router(trades.router)
app.include_router(ranking.router)
app.include_router(admin.router)


@app.on_event("startup")
async def startup_event():
    """Initialize the store, seed the market and start the scheduler."""
    logger.info("Starting application...")
    init_db()
    store = get_document_store()
    seed_market(store)
    ensure_default_admin(store)
    market_scheduler.start()
    logger.info("Application started successfully")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop scheduler on shutdown."""
    logger.info("Shutting down application...")
    market_scheduler.stop()
    logger.info("Application stopped")


@app.get("/api")
async def api_root():
    """API root endpoint."""
    return {
        "message": "URL COIN API",
        "version": "0.1.0",
        "docs": "/docs",
        "scheduler_enabled": settings.scheduler_enabled
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
