from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .assistant import AssistantRuntime, build_provider
from .bindings import bind_triggers, register_functions
from .context import ServiceContext
from .errors import AssistantError, NotFoundError, TransientRepositoryError, ValidationError
from .logging_config import configure_logging
from .registry import FunctionRegistry
from .repositories import get_repository
from .routers.functions import build_router
from .scheduler import IntervalScheduler
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "functions",
        "description": "Registered webhooks and executables operating on the todos collection.",
    },
]


# PUBLIC_INTERFACE
def build_context(settings: Settings) -> ServiceContext:
    """Wire repository, registry, triggers and assistant runtime into one context."""
    registry = register_functions(FunctionRegistry(), settings)
    context = ServiceContext(
        repository=get_repository(settings),
        registry=registry,
        assistant=AssistantRuntime(build_provider(settings), max_rounds=settings.ai_max_rounds),
    )
    bind_triggers(context)
    return context


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI app. Settings default to the environment."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        context = build_context(settings)
        scheduler = IntervalScheduler(context)
        app.state.context = context
        app.state.scheduler = scheduler
        if settings.enable_scheduler:
            await scheduler.start()
        logger.info(
            "Todo functions ready: backend=%s webhooks=%d scheduler=%s",
            settings.persistence_backend,
            len(context.registry.webhooks),
            "on" if settings.enable_scheduler else "off",
        )
        yield
        await scheduler.stop()
        logger.info("Todo functions stopped")

    app = FastAPI(
        title="Todo Functions",
        description="Webhooks, triggers and scheduled cleanup for a todos document collection.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.
        """
        return JSONResponse(
            status_code=422,
            content={
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": exc.errors(),
            },
        )

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "ValidationError", "message": str(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": "NotFoundError", "message": str(exc)})

    @app.exception_handler(TransientRepositoryError)
    async def transient_handler(request: Request, exc: TransientRepositoryError) -> JSONResponse:
        logger.warning("Storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"error": "TransientRepositoryError", "message": str(exc)})

    @app.exception_handler(AssistantError)
    async def assistant_handler(request: Request, exc: AssistantError) -> JSONResponse:
        logger.warning("Assistant failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"error": "AssistantError", "message": str(exc)})

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(build_router(settings))
    return app


app = create_app()
