"""Точка входа FastAPI."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.backend.clients.errors import ExternalServiceError
from apps.backend.middleware.request_log import RequestLogMiddleware
from apps.backend.routers import health, assistants, files, calls, embeds, scrape
from apps.backend.utils.api_errors import error_response

logger = logging.getLogger(__name__)

_HTTP_CODES = {400: "bad_request", 401: "unauthorized", 403: "forbidden", 404: "not_found"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # shutdown


app = FastAPI(
    title="VoiceDesk",
    description="Voice assistant backend: voice platform proxy, website scraping, call analytics",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["System"])
app.include_router(assistants.router, prefix="/v1/assistants", tags=["Assistants"])
app.include_router(files.router, prefix="/v1/files", tags=["Files"])
app.include_router(calls.router, prefix="/v1/calls", tags=["Calls"])
app.include_router(embeds.router, prefix="/v1/embeds", tags=["Embeds"])
app.include_router(scrape.router, prefix="/v1/scrape", tags=["Scrape"])


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if not isinstance(detail, str):
        detail = str(detail) if detail else "Request error"
    code = _HTTP_CODES.get(exc.status_code, "http_error")
    return error_response(request, code, detail, exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in (first.get("loc") or [])[1:])
    message = f"{field}: {first.get('msg')}" if field else "Invalid request"
    return error_response(request, "validation_error", message, 400)


@app.exception_handler(ExternalServiceError)
async def external_service_exception_handler(request: Request, exc: ExternalServiceError):
    """Ошибки внешних API: код + короткий текст, без секретов."""
    logger.warning(
        "external_service_error service=%s code=%s upstream_status=%s path=%s",
        exc.service,
        exc.code,
        exc.upstream_status,
        request.url.path,
    )
    return error_response(request, exc.code, exc.detail, exc.status_code)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Never return HTML: always the JSON envelope with trace_id."""
    logger.exception("Unhandled exception path=%s", request.url.path)
    return error_response(request, "internal_error", "Internal server error", 500, str(exc)[:200])
