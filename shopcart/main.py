from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from shopcart.core.config import settings
from shopcart.core.errors import register_exception_handlers
from shopcart.core.logging import get_logger, setup_logging
from shopcart.core.middleware import RequestLoggingMiddleware
from shopcart.db.session import create_db_and_tables, session_scope
from shopcart.services.catalog import CatalogService
from shopcart.services.session import SessionIssuer

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    create_db_and_tables()
    with session_scope() as session:
        if settings.SEED_CATALOG:
            CatalogService(session).seed_products()
        SessionIssuer(session).purge_expired()
    logger.info(f"{settings.PROJECT_NAME} started")
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        lifespan=lifespan,
        description="Cart, guest identity and checkout API"
    )

    from shopcart.routers import auth, cart, checkout, products

    app.include_router(auth.router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(products.router, prefix="/api/v1/products", tags=["products"])
    app.include_router(cart.router, prefix="/api/v1/cart", tags=["cart"])
    app.include_router(checkout.router, prefix="/api/v1/checkout", tags=["checkout"])

    @app.get("/api/v1/health")
    def health():
        return {"success": True, "message": "Server is running"}

    register_exception_handlers(app)

    app.add_middleware(RequestLoggingMiddleware)
    # Cookies carry the session, so credentials must be allowed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()
