"""FastAPI route definitions for the URL shortener REST API.

API Endpoint Overview
=====================
::
    GET  /health
        └─ HealthResponse (200)

    POST /shorturls
        ├─ ShortURLCreate (request body)
        └─ ShortURLResponse (201) or 400/409/500

    GET  /shorturls[?active=true]
        └─ [URLStats] (200)

    GET  /shorturls/:shortcode
        └─ URLStats (200) or 404

    GET  /:shortcode
        └─ 302 Redirect or 404/410

Error Mapping
=============
::
    ShortenerError.kind ──► ERROR_STATUS ──► {"error": <phrase>, "message": <detail>}

    INVALID_URL / INVALID_VALIDITY / INVALID_ALIAS_FORMAT ─► 400
    ALIAS_ALREADY_EXISTS ─────────────────────────────────► 409
    ALIAS_NOT_FOUND ──────────────────────────────────────► 404
    ALIAS_EXPIRED / ALIAS_INACTIVE ───────────────────────► 410
    STORE_UNAVAILABLE ────────────────────────────────────► 500

Key Behaviours
===============
- Handlers never translate errors themselves; the exception handlers registered
  by ``register_exception_handlers`` map every ``ShortenerError`` in one table.
- Body validation failures answer 400 (not FastAPI's default 422).
- Any other exception is logged and answered 500 with the same error body.
- Redirects use 302 and happen only after the click has been recorded.
"""

import datetime
import logging
from http import HTTPStatus

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shortener.dependencies import RequestContext, get_request_context, get_shortener_service
from shortener.enums import ErrorKind, HealthStatus
from shortener.errors import InvalidValidity, ShortenerError
from shortener.schemas import ErrorResponse, HealthResponse, ShortURLCreate, ShortURLResponse, URLStats
from shortener.service import ShortenerService

__all__ = ["router", "ERROR_STATUS", "register_exception_handlers"]

logger = logging.getLogger("shortener.routes")

router = APIRouter()

ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INVALID_URL: 400,
    ErrorKind.INVALID_VALIDITY: 400,
    ErrorKind.INVALID_ALIAS_FORMAT: 400,
    ErrorKind.ALIAS_ALREADY_EXISTS: 409,
    ErrorKind.ALIAS_NOT_FOUND: 404,
    ErrorKind.ALIAS_EXPIRED: 410,
    ErrorKind.ALIAS_INACTIVE: 410,
    ErrorKind.STORE_UNAVAILABLE: 500,
}


def error_response(status_code: int, message: str) -> JSONResponse:
    body = ErrorResponse(error=HTTPStatus(status_code).phrase, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


async def shortener_error_handler(request: Request, exc: ShortenerError) -> JSONResponse:
    return error_response(ERROR_STATUS[exc.kind], exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if any("validity" in err.get("loc", ()) for err in errors):
        return error_response(400, InvalidValidity.default_message)
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ())[1:]) or 'body'}: {err.get('msg', 'invalid')}"
        for err in errors
    )
    return error_response(400, details or "Malformed request")


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return error_response(500, HTTPStatus.INTERNAL_SERVER_ERROR.phrase)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShortenerError, shortener_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


# ============================================================================
# ROUTES
# ============================================================================


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    store_status = HealthStatus.HEALTHY if ctx.service_manager.store.is_open else HealthStatus.UNHEALTHY
    ctx.logger.debug(f"Health check completed: store {store_status.value}")
    return HealthResponse(
        status=store_status,
        timestamp=datetime.datetime.now(datetime.timezone.utc),
        service=ctx.settings.APP_NAME,
        store=store_status,
    )


@router.post("/shorturls", response_model=ShortURLResponse, status_code=201, tags=["urls"])
async def create_short_url(
    payload: ShortURLCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: ShortenerService = Depends(get_shortener_service),
) -> ShortURLResponse:
    ctx.add_tag("url_creation")
    ctx.logger.info(f"POST /shorturls received for {payload.url}")
    created = await service.create(payload.url, payload.validity, payload.shortcode)
    return ShortURLResponse.from_created(created)


@router.get("/shorturls", response_model=list[URLStats], tags=["urls"])
async def list_stats(
    active: bool = False,
    ctx: RequestContext = Depends(get_request_context),
    service: ShortenerService = Depends(get_shortener_service),
) -> list[URLStats]:
    ctx.logger.info(f"GET /shorturls received (active={active})")
    return [URLStats.from_stats(stats) for stats in await service.stats_for_all(active_only=active)]


@router.get("/shorturls/{shortcode}", response_model=URLStats, tags=["urls"])
async def get_stats(
    shortcode: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ShortenerService = Depends(get_shortener_service),
) -> URLStats:
    ctx.logger.info(f"GET /shorturls/{shortcode} received")
    return URLStats.from_stats(await service.stats_for(shortcode))


@router.get("/{shortcode}", tags=["redirect"])
async def redirect_to_url(
    shortcode: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ShortenerService = Depends(get_shortener_service),
) -> RedirectResponse:
    ctx.add_tag("redirect")
    original_url = await service.resolve(shortcode, ctx.client_ip, ctx.user_agent, ctx.referrer)
    ctx.logger.info(f"Redirecting {shortcode} -> {original_url} ({ctx.get_duration():.1f}ms)")
    return RedirectResponse(url=original_url, status_code=302)
