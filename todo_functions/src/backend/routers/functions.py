from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..auth import get_function_access_dependency
from ..context import ServiceContext
from ..schemas import ExecutableCall, ExecutableResult, WebhookRequest
from ..settings import Settings


def get_context(request: Request) -> ServiceContext:
    """
    Dependency returning the ServiceContext built by the app lifespan.
    """
    return request.app.state.context


# PUBLIC_INTERFACE
def build_router(settings: Settings) -> APIRouter:
    """Router exposing registered webhooks and executables, guarded per settings."""
    router = APIRouter(
        prefix="/api/v1",
        tags=["functions"],
        dependencies=[Depends(get_function_access_dependency(settings))],
    )

    # PUBLIC_INTERFACE
    @router.api_route(
        "/webhooks/{name}",
        methods=["GET", "POST"],
        summary="Call Webhook",
        description=(
            "Invoke a registered webhook with the request's query parameters.\n\n"
            "The response body is `{\"message\": ...}` and the status code is the one "
            "chosen by the webhook (200, 400, 404, 5xx)."
        ),
        responses={
            200: {"description": "Webhook succeeded"},
            400: {"description": "Missing or invalid parameters"},
            404: {"description": "Unknown webhook or todo not found"},
        },
    )
    async def call_webhook(
        name: str, request: Request, context: ServiceContext = Depends(get_context)
    ) -> JSONResponse:
        """
        Dispatch to the webhook registered under name.
        """
        try:
            binding = context.registry.webhook(name)
        except KeyError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Webhook not found") from None
        result = await binding.handler(context, WebhookRequest(query_params=dict(request.query_params)))
        return JSONResponse(status_code=result.status_code, content=jsonable_encoder({"message": result.message}))

    # PUBLIC_INTERFACE
    @router.post(
        "/executables/{name}",
        response_model=ExecutableResult,
        summary="Execute Function",
        description="Run a registered executable with positional arguments from the JSON body.",
        responses={
            200: {"description": "Executable finished"},
            400: {"description": "Invalid arguments"},
            404: {"description": "Unknown executable"},
        },
    )
    async def call_executable(
        name: str,
        payload: Optional[ExecutableCall] = None,
        context: ServiceContext = Depends(get_context),
    ) -> ExecutableResult:
        """
        Run an executable such as cleanTodos or createTodosWithAI.
        """
        if name not in context.registry.executables:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Executable not found")
        args = payload.args if payload else []
        result = await context.execute_function(name, *args)
        return ExecutableResult(result=jsonable_encoder(result))

    return router
