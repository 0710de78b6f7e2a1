import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import AppError
from app.core.logging import setup_logging
from app.core.middleware import RequestLoggingMiddleware

# Routers
from app.routers.health import router as health_router
from app.routers.lifecycle import router as lifecycle_router
from app.routers.validation import router as validation_router
from app.routers.impersonation import router as impersonation_router

# Policy bootstrap
from app.services.policy.registry import PolicyRegistry

# Supabase (singleton)
from app.infra.supabase_client import get_supabase

from app.services.impersonation.session_store import InMemorySessionStore
from app.services.impersonation.tenant_cache import TenantCacheRegistry
from app.services.validation.validation_dispatcher import ValidationDispatcher
from app.services.validation.validation_orchestrator import ValidationOrchestrator
from app.services.validation.validation_status_poller import PollerRegistry

logger = logging.getLogger("clm.boot")


def _init_state(app: FastAPI, sb) -> None:
    app.state.sb = sb
    app.state.session_store = InMemorySessionStore()
    app.state.tenant_caches = TenantCacheRegistry()
    app.state.pollers = PollerRegistry(sb)
    app.state.dispatcher = ValidationDispatcher(lambda: ValidationOrchestrator(sb))


def create_app(sb=None) -> FastAPI:
    setup_logging()
    app = FastAPI(title="Contract Lifecycle & Validation Backend")

    if sb is not None:
        _init_state(app, sb)

    # -------------------------------------------------
    # CORS + request logging
    # -------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    @app.middleware("http")
    async def inject_request_context(request: Request, call_next):
        if not hasattr(request.app.state, "sb"):
            raise RuntimeError("Supabase client (app.state.sb) is not initialized")
        request.state.sb = request.app.state.sb
        return await call_next(request)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # -------------------------------------------------
    # Startup / shutdown
    # -------------------------------------------------
    @app.on_event("startup")
    def startup():
        # 1) Load lifecycle policy (fail fast)
        policy = PolicyRegistry.load_file(settings.LIFECYCLE_POLICY_PATH or None)
        logger.info("[BOOT] Lifecycle policy loaded: %s", policy.version)

        # 2) Initialize Supabase singleton (fail fast)
        if not hasattr(app.state, "sb"):
            _init_state(app, get_supabase())
            logger.info("[BOOT] Supabase client initialized")

    @app.on_event("shutdown")
    async def shutdown():
        await app.state.pollers.shutdown()
        await app.state.dispatcher.shutdown()

    # -------------------------------------------------
    # Routers
    # -------------------------------------------------
    app.include_router(health_router, prefix="/api/v1/health", tags=["health"])
    app.include_router(lifecycle_router, prefix="/api/v1", tags=["lifecycle"])
    app.include_router(validation_router, prefix="/api/v1", tags=["validation"])
    app.include_router(impersonation_router, prefix="/api/v1/impersonation", tags=["impersonation"])

    return app


app = create_app()
