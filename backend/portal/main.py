"""FastAPI application for the community portal.

``create_app`` wires the repository, session manager, middleware and
routers.  Tests build their own app with an in-memory repository; the
module-level ``app`` is what ``uvicorn portal.main:app`` serves.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portal import __version__
from portal.exceptions import PortalError
from portal.routers import auth, portal as portal_routes, public
from portal.routers.admin import router as admin_router
from portal.scheduler import shutdown_scheduler, start_scheduler
from portal.security import get_client_ip, log_security_event, setup_security
from portal.services.session_service import SessionManager
from portal.services.user_service import UserService
from portal.store import PortalRepository, SqlDocumentStore

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

# =============================================================================
# CORS Configuration
# =============================================================================
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()


def _allowed_origins() -> list[str]:
    """Production accepts HTTPS origins only; development allows localhost."""
    if ENVIRONMENT == "production":
        raw = os.getenv("ALLOWED_ORIGINS", "").split(",")
        origins = []
        for origin in raw:
            origin = origin.strip()
            if not origin:
                continue
            if not origin.startswith("https://") or "localhost" in origin or "127.0.0.1" in origin:
                logger.warning("[CORS] Rejecting origin in production: %s", origin)
                continue
            origins.append(origin)
        return origins

    default_origins = "http://localhost:3000,http://localhost:5173,http://localhost:5174"
    return [o.strip() for o in os.getenv("ALLOWED_ORIGINS", default_origins).split(",") if o.strip()]


def _scheduler_enabled() -> bool:
    return os.getenv("PORTAL_ENABLE_SCHEDULER", "true").strip().lower() in ("1", "true", "yes", "y", "on")


# =============================================================================
# Application factory
# =============================================================================


def create_app(repository: Optional[PortalRepository] = None) -> FastAPI:
    """Build the API.  ``repository`` defaults to the SQL-backed store."""
    repository = repository or PortalRepository(SqlDocumentStore())
    sessions = SessionManager(repository)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables, seed the owner and start the schedule job."""
        await repository.init()
        await UserService.ensure_owner_account(repository)
        scheduler_on = _scheduler_enabled()
        if scheduler_on:
            start_scheduler(repository)
        else:
            logger.info("Scheduler disabled (set PORTAL_ENABLE_SCHEDULER=true to enable)")
        logger.info("Portal API started")
        yield
        if scheduler_on:
            shutdown_scheduler()
        logger.info("Portal API shutdown complete")

    app = FastAPI(
        title="Community Portal API",
        description="Applications, roles and site settings for a community server",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.repository = repository
    app.state.sessions = sessions

    allowed_origins = _allowed_origins()
    logger.info("[CORS] Environment: %s, allowed origins: %s", ENVIRONMENT, allowed_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
    )
    setup_security(app, allowed_origins)

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
        if exc.status_code in (401, 403):
            log_security_event(type(exc).__name__, request, {"error": exc.message})
        else:
            logger.info(
                "%s on %s %s: %s (client_ip=%s)",
                type(exc).__name__,
                request.method,
                request.url.path,
                exc.message,
                get_client_ip(request),
            )
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=422,
            content={"success": False, "error": f"{location}: {message}" if location else message},
        )

    app.include_router(public.router, prefix=API_PREFIX)
    app.include_router(auth.router, prefix=API_PREFIX)
    app.include_router(portal_routes.router, prefix=API_PREFIX)
    app.include_router(admin_router, prefix=API_PREFIX)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
