"""Castolin order API - Main Application."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from castolin.config import get_settings
from castolin.db.client import close_connections, get_pg_session, get_query_stats
from castolin.routes import customers_router, orders_router, stock_items_router

# Configure logging
settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Request logging is done per operation in the services
class AccessLogFilter(logging.Filter):
    """Drop uvicorn access log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return False


logging.getLogger("uvicorn.access").addFilter(AccessLogFilter())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Dispose the database engine on shutdown."""
    logger.info("🚀 Starting Castolin order API...")
    yield
    logger.info("🛑 Castolin order API stopping, closing database connections")
    await close_connections()


app = FastAPI(
    title="Castolin Order API",
    description="""
    Backend for distributor and corporate sales orders.

    ## Features

    - **Orders**: read order rows, batch-create orders, generate order numbers
    - **Order reconciliation**: insert, update and delete an order's line items
      in one transaction from the full desired list
    - **Customers**: customers, distributors, corporates and admins
    - **Stock items**: the item catalogue

    ## Data Model

    Orders have no header table: every line item row of the `orders` table
    carries a copy of the order-level fields (customer, status, totals,
    remarks), kept identical across the order on every write.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Answer 500 for anything the routers did not map."""
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


app.include_router(orders_router)
app.include_router(customers_router)
app.include_router(stock_items_router)


async def _database_error() -> Optional[str]:
    """Run a trivial query; return the error text, or None when the database answers."""
    try:
        async with get_pg_session() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        return str(e)
    return None


@app.get("/health", tags=["Health"])
async def health():
    """Liveness probe; does not touch the database."""
    return {"status": "healthy"}


@app.get("/api/health", tags=["Health"])
async def api_health():
    """Status page used by the order portal, always 200."""
    error = await _database_error()
    if error:
        logger.warning(f"⚠️ Database unreachable for /api/health: {error}")

    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "Connection Error" if error else "Connected",
    }


@app.get("/ready", tags=["Health"])
async def ready():
    """Readiness probe: 503 until PostgreSQL accepts queries."""
    error = await _database_error()
    if error:
        logger.error(f"❌ Not ready, database unreachable: {error}")
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "database": "disconnected", "error": error},
        )
    return {"status": "ready", "database": "connected"}


@app.get("/stats", tags=["Health"])
async def query_stats():
    """Statement counts and timings collected since startup, split by SQL verb."""
    return {"postgresql": get_query_stats().to_dict()}


@app.get("/", tags=["Root"])
async def root():
    return {
        "name": "Castolin Order API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "stats": "/stats",
    }


def run():
    """Serve the app with uvicorn on the configured port."""
    import uvicorn

    uvicorn.run("castolin.main:app", host="0.0.0.0", port=settings.api_port)


if __name__ == "__main__":
    run()
