"""ASGI application for the Form Builder service.

``uvicorn formbuilder.main:app`` serves it. Routers live in
``formbuilder.routes``; core errors are turned into JSON bodies here.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from formbuilder.config import get_settings
from formbuilder.logging_config import RequestContextFilter, setup_logging, get_logger
from formbuilder.models.database import Base, engine
from formbuilder.routes import analytics, auth, forms, health, responses, templates
from formbuilder.schemas.response import ErrorBody
from formbuilder.services.errors import FormBuilderError

SERVICE_NAME = "Form Builder"
SERVICE_VERSION = "1.0.0"

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and create missing tables before serving."""
    settings = get_settings()
    setup_logging()
    Base.metadata.create_all(engine)

    logger.info(
        f"{SERVICE_NAME} {SERVICE_VERSION} up "
        f"(environment={settings.environment}, "
        f"database={engine.url.render_as_string(hide_password=True)})"
    )
    yield
    logger.info(f"{SERVICE_NAME} stopped")


app = FastAPI(
    title=SERVICE_NAME,
    description="Conditional forms with response validation and live analytics",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().get_allowed_origins_list(),
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag every log record emitted during a request with its request id."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    context_filter = RequestContextFilter(request_id)
    root_handlers = list(get_logger("").handlers)
    for handler in root_handlers:
        handler.addFilter(context_filter)
    try:
        response = await call_next(request)
    finally:
        for handler in root_handlers:
            handler.removeFilter(context_filter)
    response.headers["X-Request-ID"] = request_id
    return response


@app.get("/")
async def root() -> dict:
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "environment": get_settings().environment,
        "status": "operational"
    }


app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, tags=["Auth"])
app.include_router(forms.router, tags=["Forms"])
app.include_router(responses.router, tags=["Responses"])
app.include_router(analytics.router, tags=["Analytics"])
app.include_router(templates.router, tags=["Templates"])


@app.exception_handler(FormBuilderError)
async def form_builder_exception_handler(request: Request, exc: FormBuilderError) -> JSONResponse:
    """Render a core error as ``{"error", "message", "details"}`` with its status."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")
    body = ErrorBody.model_validate(exc.to_dict())
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log anything the routes did not handle and answer a bare 500.

    The body never includes the exception text.
    """
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "Internal server error"}
    )
