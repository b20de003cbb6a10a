from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from structlog.contextvars import bound_contextvars

from watchlog.api.routes import router
from watchlog.dependencies import (
    get_config_repository,
    get_pipeline,
    get_settings,
    get_telemetry,
)
from watchlog.logging_config import configure_application_logging
from watchlog.telemetry import HTTP_REQUEST_ERROR, HTTP_REQUEST_FINISH

REQUEST_ID_HEADER = "X-Request-ID"


def health_check() -> dict[str, object]:
    config = get_config_repository().load()
    return {"status": "ok", "api_key_configured": bool(config.api_key)}


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_application_logging(get_settings())
    try:
        yield
    finally:
        # Let accepted watch events finish before the process exits.
        get_pipeline().shutdown(wait=True)


def _request_id_from(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "").strip()
    return supplied or uuid4().hex


async def request_context_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = _request_id_from(request)
    telemetry = get_telemetry().bind(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    started_at = perf_counter()

    def _elapsed_ms() -> int:
        return int((perf_counter() - started_at) * 1000)

    with bound_contextvars(
        http_request_id=request_id,
        http_method=request.method,
        http_path=request.url.path,
    ):
        try:
            response = await call_next(request)
        except Exception as exc:
            telemetry.emit(
                HTTP_REQUEST_ERROR,
                duration_ms=_elapsed_ms(),
                error_type=type(exc).__name__,
            )
            raise

    response.headers[REQUEST_ID_HEADER] = request_id
    telemetry.emit(
        HTTP_REQUEST_FINISH,
        duration_ms=_elapsed_ms(),
        status_code=response.status_code,
    )
    return response


def create_app() -> FastAPI:
    app = FastAPI(title="Watch Log API", version="0.1.0", lifespan=app_lifespan)
    app.middleware("http")(request_context_middleware)
    app.include_router(router)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )
    return app


app = create_app()
