from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.api.v1.router import api_router
from app.core.exceptions import CommerceError
from app.database import init_db, async_session_factory


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create missing tables
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    yield

    logger.info("Shutting down...")


# OpenAPI Tags with detailed descriptions
OPENAPI_TAGS = [
    {"name": "Authentication", "description": "JWT-based authentication with access/refresh tokens"},
    {"name": "Addresses", "description": "Saved shipping and billing addresses"},
    {"name": "Products", "description": "Product catalog with variants and preorder settings"},
    {"name": "Inventory", "description": "Per-variant stock levels and low-stock alerts"},
    {"name": "Cart", "description": "Shopping cart with regular and preorder lines"},
    {"name": "Orders", "description": "Checkout, cancellation and order lifecycle"},
    {"name": "Preorders", "description": "Preorders against future stock, deposits and lifecycle"},
    {"name": "Reviews", "description": "Product reviews from delivered orders"},
    {"name": "Wishlist", "description": "Saved products"},
    {"name": "Health", "description": "Service health"},
]

API_DESCRIPTION = """
Storefront commerce backend: catalog, cart, checkout with stock control,
preorders with deposits, reviews and wishlists.

- **API Docs**: /docs (Swagger UI)
- **Health Check**: /health
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


@app.exception_handler(CommerceError)
async def commerce_exception_handler(request: Request, exc: CommerceError):
    """Business-rule failures carry their own status code and details."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "type": type(exc).__name__,
            "details": exc.details,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unexpected failures become a 500 JSON body."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")

    error_detail = {
        "error": str(exc) if settings.DEBUG else "Internal server error",
        "type": type(exc).__name__,
        "path": str(request.url.path),
        "method": request.method,
    }
    return JSONResponse(status_code=500, content=error_detail)


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
