# backend/app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute

from .core.config import is_running_tests, settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_V1_PREFIX, API_VERSION, BRAND_NAME
from .errors import register_error_handlers
from .routes import health, prometheus
from .routes.v1 import appointments as appointments_v1, payments as payments_v1

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(
        f"Environment: {settings.environment}, timezone {settings.scheduling_timezone}, "
        f"currency {settings.payment_currency}"
    )
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")
    if not settings.stripe_secret_key.get_secret_value():
        logger.warning("STRIPE_SECRET_KEY is not set; checkout will fail until it is configured")
    if not settings.redis_url:
        logger.info("REDIS_URL not set; course schedule mutex disabled, database locking only")

    yield

    logger.info(f"{BRAND_NAME} API shutting down...")


def _unique_operation_id(route: APIRoute) -> str:
    methods = "_".join(sorted(m.lower() for m in route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "").strip("_")
    name = (route.name or "operation").lower().replace(" ", "_")
    return f"{methods}__{path}__{name}".strip("_")


def create_app() -> FastAPI:
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
        generate_unique_id_function=_unique_operation_id,
    )
    # Register unified error envelope handlers
    register_error_handlers(app)

    # Create API v1 router
    api_v1 = APIRouter(prefix=API_V1_PREFIX)
    api_v1.include_router(appointments_v1.router, prefix="/appointments")
    api_v1.include_router(payments_v1.router, prefix="/payments")
    app.include_router(api_v1)

    # Operational endpoints stay unversioned
    app.include_router(health.router)
    app.include_router(prometheus.router)
    return app


app = create_app()
