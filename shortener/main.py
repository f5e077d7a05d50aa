"""FastAPI application entry point for the URL shortener service.

Application Lifecycle Diagram
=============================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌──────────────┐
    │ Create FastAPI│
    │ app instance  │
    └──────┬───────┘
           ▼
    ┌─────────────┐
    │ CORS, error │
    │ handlers,   │
    │ /metrics    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Include     │
    │ routes      │
    └──────┬──────┘
           ▼
    ┌──────────────────┐
    │ lifespan()       │
    │ startup:         │
    │ ServiceManager   │
    │ .initialize()    │
    └──────┬───────────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌──────────────────┐
    │ lifespan()       │
    │ shutdown:        │
    │ .cleanup()       │
    │ (store closed,   │
    │ log queue drained)│
    └──────────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn shortener.main:app --host 0.0.0.0 --port 8000 --reload

**Step 2 — Make API calls**::
    # Shorten URL
    curl -X POST http://localhost:8000/shorturls \
         -H "Content-Type: application/json" \
         -d '{"url": "https://example.com", "validity": 30, "shortcode": "abc123"}'

    # Follow it
    curl -i http://localhost:8000/abc123

    # Statistics
    curl http://localhost:8000/shorturls/abc123

Key Behaviours
===============
- ``/metrics`` is registered before the catch-all ``/{shortcode}`` route.
- Aliases live only in process memory; a restart forgets them.
- Allowed CORS origins come from ``CORS_ORIGINS``.
"""

__all__ = ["app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from shortener.config import get_settings
from shortener.dependencies import _service_manager
from shortener.routes import register_exception_handlers, router

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await _service_manager.initialize()
    yield
    # Shutdown
    await _service_manager.cleanup()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="URL shortener with expiring aliases and click analytics",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

register_exception_handlers(app)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)

app.include_router(router)
