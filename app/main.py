import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from supabase import Client

from database.connection import init_db
from database.supabase_client import create_supabase_client
from app.api import api_router
from app.core.config import Settings, load_settings
from app.core.errors import AppError, app_error_handler, unhandled_error_handler
from app.core.tasks import BackgroundDispatcher
from app.repositories.notification_log import NotificationLogRepository
from app.services.rate_limit import NotificationRateLimiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    init_db(app.state.db)
    yield
    # Shutdown: let queued alerts and pushes finish
    await app.state.background.drain()


class DynamicCORSMiddleware(BaseHTTPMiddleware):
    """CORS for the PWA: any origin in development, ALLOWED_ORIGINS in production."""

    def __init__(self, app, settings: Settings):
        super().__init__(app)
        self.settings = settings

    def is_allowed(self, origin: str) -> bool:
        if self.settings.environment != "production":
            return True
        return origin in self.settings.origins

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")

        # Handle preflight requests
        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            response = await call_next(request)

        if origin:
            if self.is_allowed(origin):
                response.headers["Access-Control-Allow-Origin"] = origin
                response.headers["Access-Control-Allow-Credentials"] = "true"
            else:
                logger.warning(f"CORS rejected - Origin '{origin}' is not allowed")

        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS, PATCH"
        response.headers["Access-Control-Allow-Headers"] = (
            "Content-Type, Authorization, X-Requested-With, x-cron-token"
        )

        return response


def create_app(settings: Settings | None = None, db: Client | None = None) -> FastAPI:
    """Build the application.

    Settings are validated here (ConfigurationError lists every missing
    variable) and the Supabase client is created once and shared by all
    requests through app.state.
    """
    settings = settings or load_settings()
    db = db or create_supabase_client(settings)

    app = FastAPI(
        title="Nhớ",
        description="Daily messages, reactions and device-approved login for two people",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.db = db
    app.state.background = BackgroundDispatcher()
    # One limiter per process so windows are shared across requests
    app.state.rate_limiter = NotificationRateLimiter(NotificationLogRepository(db))

    app.add_middleware(DynamicCORSMiddleware, settings=settings)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Include all routes
    app.include_router(api_router)

    return app
