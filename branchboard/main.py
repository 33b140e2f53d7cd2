import os
from typing import Optional

import anyio.to_thread
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .db import Base, engine, SessionLocal
from .logging import setup_logging, RequestIdMiddleware, structlog
from .deps import build_lifecycle
from .services.clock import CivilClock
from .services.errors import DomainError
from .services.live_hub import LiveUpdateHub
from .services.repository import Repository
from .services.scheduler import MidnightResetScheduler
from .services.users import UserService
from .auth.router import router as auth_router
from .routes.vehicles import router as vehicles_router
from .routes.users import router as users_router
from .routes.todos import router as todos_router
from .routes.quality import router as quality_router
from .routes.flow import router as flow_router
from .routes.daily import router as daily_router
from .routes.dashboard import router as dashboard_router
from .routes.live import router as live_router


log = structlog.get_logger(__name__)


def run_midnight_reset(app: FastAPI) -> dict:
    db = SessionLocal()
    try:
        repo = Repository(db, app.state.clock)
        return build_lifecycle(repo, app.state.hub.notify).midnight_reset()
    finally:
        db.close()


def create_app(enable_metrics: Optional[bool] = None, enable_scheduler: Optional[bool] = None) -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)
    app.state.clock = CivilClock(settings.tz_default)
    app.state.hub = LiveUpdateHub()
    app.state.scheduler = None

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, lambda r, e: JSONResponse({"detail": "Rate limit exceeded"}, status_code=429))
    app.add_middleware(SlowAPIMiddleware)

    async def _domain_error(request: Request, exc: DomainError):
        log.info("domain_error", error=type(exc).__name__, detail=exc.message, field=exc.field, path=request.url.path)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    app.add_exception_handler(DomainError, _domain_error)

    # Routers
    app.include_router(auth_router)
    app.include_router(vehicles_router)
    app.include_router(users_router)
    app.include_router(todos_router)
    app.include_router(quality_router)
    app.include_router(flow_router)
    app.include_router(daily_router)
    app.include_router(dashboard_router)
    app.include_router(live_router)

    @app.get("/health")
    def health():
        return {"status": "ok", "time": app.state.clock.now().isoformat(), "today": app.state.clock.today()}

    # Metrics
    if settings.enable_metrics if enable_metrics is None else enable_metrics:
        Instrumentator().instrument(app).expose(app)

    scheduler_on = settings.enable_scheduler if enable_scheduler is None else enable_scheduler

    @app.on_event("startup")
    async def _startup():
        log.info("startup", environment=settings.environment, timezone=settings.tz_default)
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
        db = SessionLocal()
        try:
            UserService(Repository(db, app.state.clock), app.state.hub.notify).seed_branch_manager(
                settings.branch_manager_pin, settings.branch_manager_initials
            )
        finally:
            db.close()
        if scheduler_on:

            async def _reset():
                return await anyio.to_thread.run_sync(run_midnight_reset, app)

            app.state.scheduler = MidnightResetScheduler(
                app.state.clock, _reset, buffer_seconds=settings.midnight_buffer_seconds
            )
            app.state.scheduler.start()
        log.info("startup_complete", scheduler=scheduler_on)

    @app.on_event("shutdown")
    async def _shutdown():
        if app.state.scheduler is not None:
            await app.state.scheduler.stop()
        log.info("shutdown")

    return app


app = create_app()
