"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from tubely.core.config import settings
from tubely.core.database import Base, engine
from tubely.core.logging import setup_logging
from tubely.core.metrics import get_content_type, get_metrics, set_app_info
from tubely.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
    TracingMiddleware,
)
from tubely.core.tracing import setup_tracing, shutdown_tracing
from tubely.modules.video.router import router as video_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup when running without migrations; flush spans on shutdown."""
    if settings.DEBUG:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    yield
    shutdown_tracing()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
## Tubely video ingestion API

Upload MP4 files to your video records. Each upload is classified by aspect
ratio, remuxed for fast-start playback and stored in object storage.

### Authentication

All `/videos` endpoints require a JWT Bearer token.

```
Authorization: Bearer <access_token>
```
    """,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "health", "description": "Health check endpoints"},
        {"name": "videos", "description": "Video records, media and thumbnail uploads"},
    ],
)

setup_logging(
    level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
    json_format=settings.LOG_JSON,
    include_stack_trace=True,
)

setup_tracing(
    service_name=settings.PROJECT_NAME,
    service_version=settings.VERSION,
    environment="development" if settings.DEBUG else "production",
    otlp_endpoint=settings.OTLP_ENDPOINT,
    enable_console_export=settings.DEBUG,
)

set_app_info(
    version=settings.VERSION,
    environment="development" if settings.DEBUG else "production",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TracingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(MetricsMiddleware)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_content_type())


app.include_router(video_router)

Path(settings.ASSETS_ROOT).mkdir(parents=True, exist_ok=True)
app.mount("/assets", StaticFiles(directory=settings.ASSETS_ROOT), name="assets")
