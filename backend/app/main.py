import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from app.api.routes import (
    analytics,
    auth,
    chat,
    health,
    orders,
    policies,
    products,
    tickets,
    try_on,
    user_images,
    webhooks,
)
from app.logging import configure_logging, sanitize_message
from app.utils.api_errors import ServiceError
from app.utils.cors import cors_headers, is_allowed_origin

configure_logging()

logger = structlog.get_logger()

app = FastAPI(
    title="Closelook API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url=None,
)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", request.headers.get("X-Request-ID", ""))


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Attach a unique request ID to every request for log correlation.

    Sets the ID in structlog context vars (appears in all log entries for the
    request) and returns it in the X-Request-ID response header so storefront
    widgets can report it when debugging errors.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def cors_middleware(request: Request, call_next):
    """Echo allowed storefront origins; answer preflight requests with 204.

    Disallowed origins get no CORS headers and the browser blocks the call.
    """
    origin = request.headers.get("origin")
    if origin and not is_allowed_origin(origin):
        logger.warning("cors_origin_rejected", origin=origin, path=request.url.path)

    if request.method == "OPTIONS" and request.headers.get("access-control-request-method"):
        return Response(status_code=204, headers=cors_headers(origin))

    response = await call_next(request)
    response.headers.update(cors_headers(origin))
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Serialize the service error taxonomy as ErrorResponse JSON."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "service_error",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
        code=exc.code,
        error=exc.message,
    )
    response = JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code,
            "message": sanitize_message(exc.message),
            "retryable": exc.retryable,
        },
    )
    response.headers["X-Request-ID"] = _request_id(request)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Return ErrorResponse JSON for Pydantic validation errors.

    FastAPI's default 422 returns {"detail": [...]}, which doesn't match
    our ErrorResponse contract. The widgets need a single error shape.
    """
    messages = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}")
    response = JSONResponse(
        status_code=422,
        content={
            "error": "validation_error",
            "message": "; ".join(messages),
            "retryable": False,
        },
    )
    response.headers["X-Request-ID"] = _request_id(request)
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return consistent ErrorResponse JSON for unhandled exceptions.

    This handler runs outside the http middlewares, so CORS headers and the
    request ID are set here.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    response = JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "retryable": False,
        },
    )
    response.headers.update(cors_headers(request.headers.get("origin")))
    response.headers["X-Request-ID"] = _request_id(request)
    return response


app.include_router(health.router)
app.include_router(orders.router, prefix="/api/shopify")
app.include_router(policies.router, prefix="/api/shopify")
app.include_router(tickets.router, prefix="/api/shopify")
app.include_router(products.router, prefix="/api/shopify")
app.include_router(auth.router, prefix="/api/shopify")
app.include_router(webhooks.router, prefix="/api/shopify")
app.include_router(chat.router, prefix="/api")
app.include_router(try_on.router, prefix="/api")
app.include_router(user_images.router, prefix="/api")
app.include_router(analytics.router, prefix="/api/analytics")
