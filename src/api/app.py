import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.app.services.unit_of_work import UnitOfWork
from src.app.services.window_cleanup import WindowCleanupWorker

from .error import ClientError, ServerError

logger = logging.getLogger(__name__)


async def handle_client_error(request: Request, exc: ClientError):
    error_dict = {"code": exc.base_error.code, "message": exc.base_error.message}
    logger.warning(f"Client error: {error_dict}")
    return JSONResponse(status_code=exc.status_code, content={"error": error_dict})


async def handle_server_error(request: Request, exc: ServerError):
    error_dict = {"code": exc.base_error.code, "message": "Internal server error"}
    logger.error(f"Server error: {exc.base_error.code}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": error_dict}
    )


def create_app(
    ApplicationConfig, uow_factory: Optional[Callable[[], UnitOfWork]] = None
) -> FastAPI:
    from src.depends import (
        build_audit_logger,
        build_rate_limiter,
        build_session_registry,
        default_uow_factory,
    )

    uow_factory = uow_factory or default_uow_factory
    audit_logger = build_audit_logger(ApplicationConfig, uow_factory)
    session_registry = build_session_registry(ApplicationConfig, uow_factory, audit_logger)
    rate_limiter = build_rate_limiter(ApplicationConfig, uow_factory, audit_logger)
    cleanup_worker = WindowCleanupWorker(
        rate_limiter, interval_seconds=ApplicationConfig.RATE_LIMIT_CLEANUP_INTERVAL_SECONDS
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cleanup_worker.start()
        try:
            yield
        finally:
            await cleanup_worker.stop()

    middleware = []
    if ApplicationConfig.RATE_LIMIT_ENABLED:
        middleware.append(
            rate_limiter.middleware(
                skip_allowlist=ApplicationConfig.RATE_LIMIT_SKIP_ALLOWLIST,
                exempt_paths=ApplicationConfig.RATE_LIMIT_EXEMPT_PATHS,
            )
        )

    app = FastAPI(
        title="Security Telemetry API",
        version="0.1.0",
        lifespan=lifespan,
        middleware=middleware,
    )

    app.state.audit_logger = audit_logger
    app.state.session_registry = session_registry
    app.state.rate_limiter = rate_limiter
    app.state.cleanup_worker = cleanup_worker

    # Outermost layer, wraps the rate limiter
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ApplicationConfig.CORS_ORIGINS,
        allow_credentials=ApplicationConfig.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from src.api.routes import audit, health_check, sessions

    app.include_router(health_check.router, tags=["Health"])
    app.include_router(audit.router, tags=["Audit"])
    app.include_router(sessions.router, tags=["Sessions"])

    app.add_exception_handler(ClientError, handle_client_error)
    app.add_exception_handler(ServerError, handle_server_error)

    return app
