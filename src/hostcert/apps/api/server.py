# src/hostcert/apps/api/server.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from hostcert.apps.api import ssl_endpoints
from hostcert.build_info import BUILD_INFO
from hostcert.services.bootstrap import open_engine
from hostcert.services.settings import Settings, load_settings

_log = logging.getLogger("hostcert.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = getattr(app.state, "settings", None) or load_settings()
    app.state.settings = settings
    async with open_engine(settings) as engine:
        app.state.engine = engine
        _log.info("%s started", settings.app_name)
        try:
            yield
        finally:
            _log.info("%s stopping; %s reconciliation(s) in flight", settings.app_name, engine.pending_tasks)


def create_app(settings: Settings | None = None) -> FastAPI:
    app = FastAPI(title="hostcert", lifespan=lifespan, version=BUILD_INFO.version)
    if settings is not None:
        app.state.settings = settings

    # tenant = the Host the request was addressed to
    @app.middleware("http")
    async def detect_tenant(request: Request, call_next):
        request.state.tenant = request.headers.get("host")
        return await call_next(request)

    app.include_router(ssl_endpoints.router)
    ssl_endpoints.install_error_handlers(app)

    @app.get("/")
    async def index(request: Request):
        current: Settings = getattr(request.app.state, "settings", None) or Settings()
        return {
            "success": True,
            "message": f"Hello World! From {current.app_name}",
            "tenant": getattr(request.state, "tenant", None),
        }

    # --- health endpoint (no auth; for orchestrator probes) ---
    @app.get("/health/live")
    async def health_live():
        return {"ok": True, "hostcert": {"version": BUILD_INFO.version, "build_date": BUILD_INFO.build_date}}

    return app


app = create_app()
