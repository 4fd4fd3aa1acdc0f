import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from app.config.settings import settings
from app.core.dependencies import Services
from app.core.errors import AppError
from app.modules.automation.sweeper import SweeperScheduler
from app.modules.automation import routes as automation_routes
from app.modules.audit import routes as audit_routes
from app.modules.auth import routes as auth_routes
from app.modules.members import routes as members_routes
from app.modules.cron import routes as cron_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter
app.state.sweeper_scheduler = None
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=500, content={"detail": str(exc)})


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"X-XSS-Protection", b"1; mode=block"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include module routes
app.include_router(automation_routes.router, prefix="/api/v1")
app.include_router(audit_routes.router, prefix="/api/v1")
app.include_router(auth_routes.router, prefix="/api/v1")
app.include_router(members_routes.router, prefix="/api/v1")
app.include_router(cron_routes.router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup")
    if not settings.roblox_bot_token:
        logger.warning("ROBLOX_BOT_TOKEN is not set; role changes will be rejected")

    if settings.suspension_sweeper_enabled:
        scheduler = SweeperScheduler(Services.get_sweeper(), settings.suspension_sweep_interval_seconds)
        scheduler.start()
        app.state.sweeper_scheduler = scheduler
    else:
        logger.info("Suspension sweeper disabled; expired suspensions rely on /cron/process-suspensions")


@app.on_event("shutdown")
async def shutdown_event():
    scheduler = app.state.sweeper_scheduler
    if scheduler is not None:
        await scheduler.stop()
        app.state.sweeper_scheduler = None
    await Services.close()
    logger.info("Application shutdown")


@app.get("/")
async def root():
    return {"message": "Welcome to rogrouper-backend", "status": "healthy"}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready():
    """Readiness probe: reports whether the suspension sweeper loop is alive."""
    scheduler = app.state.sweeper_scheduler
    return {
        "status": "ready",
        "sweeper": "running" if scheduler is not None and scheduler.running else "stopped",
    }
