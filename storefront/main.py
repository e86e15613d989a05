"""
Storefront Backend
FastAPI application entry point

- Rate limiting with SlowAPI (checkout keyed per user)
- Typed domain errors rendered by storefront_error_handler
- Error sanitization middleware for anything unhandled
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from storefront.api.routes import admin_orders, cart, orders, products
from storefront.core.config import settings
from storefront.core.database import AsyncSessionLocal, create_tables
from storefront.core.error_handler import ErrorSanitizationMiddleware, storefront_error_handler
from storefront.core.exceptions import StorefrontError
from storefront.core.rate_limit import limiter, rate_limit_exceeded_handler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables for local development; production schemas are migrated."""
    if settings.ENVIRONMENT == "development":
        await create_tables()
        logger.info("Development database tables ensured")
    yield


app = FastAPI(
    lifespan=lifespan,
    title=f"{settings.APP_NAME} API",
    description="""
## Storefront API

Catalog browsing, cart management, checkout and order history.

### Authentication
Send the access token issued by the identity service as
`Authorization: Bearer <token>` (or the `access_token` cookie).

### Checkout
`POST /api/orders` is not idempotent. If a request times out, list your
orders before retrying.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check"},
        {"name": "Products", "description": "Product catalog"},
        {"name": "Cart", "description": "Shopping cart operations"},
        {"name": "Orders", "description": "Checkout and order history"},
        {"name": "Admin - Orders", "description": "Order status management"},
    ],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(StorefrontError, storefront_error_handler)

app.add_middleware(ErrorSanitizationMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(products.router, prefix="/api/products", tags=["Products"])
app.include_router(cart.router, prefix="/api/cart", tags=["Cart"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(admin_orders.router, prefix="/api/admin/orders", tags=["Admin - Orders"])


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness plus a database ping."""
    db_status = "ok"
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check database ping failed: {e}")
        db_status = "unavailable"

    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "database": db_status,
        "environment": settings.ENVIRONMENT,
    }
