import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load env from creditpath/.env
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from creditpath.core.config import settings, validate_config, cors_origins
from creditpath.core.logging import configure_logging
from creditpath.core.middleware.request_id import RequestIdMiddleware
from creditpath.core.errors import register_error_handlers
from creditpath.api import access, checkout, health, pricing, subscription

configure_logging(settings.ENV, settings.LOG_LEVEL)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("creditpath")
    logger.info(
        "Starting creditpath service (billing_api=%s)",
        settings.BILLING_API_URL or "<unset>",
    )
    app.state.startup_time = time.time()
    try:
        yield
    finally:
        logger.info("Stopping creditpath service...")


app = FastAPI(title="creditpath - access & checkout", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)

register_error_handlers(app)

# CORS (adjust origins in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.root_router, tags=["health"])
app.include_router(pricing.router, prefix="/api", tags=["pricing"])
app.include_router(access.router, prefix="/api", tags=["access"])
app.include_router(subscription.router, prefix="/api", tags=["subscription"])
app.include_router(checkout.router, prefix="/api", tags=["checkout"])
