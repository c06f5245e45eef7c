"""
FastAPI application entry point.

Illustrated story generation API: story text through a configurable text
provider, paragraph illustrations through a configurable image provider.
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src import __version__
from src.infra.logging_config import setup_logging
from src.story.errors import AppError, InternalServerError, ValidationError, log_error
from src.story.api_client import images_enabled
from src.story.model_provider import load_text_provider_config
from src.story.provider_health import get_health_cache, reset_health_cache
from .dependencies.rate_limit import enforce_rate_limit
from .dependencies.request_size import limit_request_size
from .routers import images, story

load_dotenv()

logger = logging.getLogger("story_generator")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Configures logging on startup and drops the provider health cache on
    shutdown.
    """
    setup_logging()
    logger.info(f"[API] Starting story generator API v{__version__}")

    yield

    reset_health_cache()
    logger.info("[API] Shutdown complete")

# Tag metadata for Swagger UI
tags_metadata = [
    {
        "name": "story",
        "description": "Story generation, paragraph regeneration and continuation via the configured text provider",
    },
    {
        "name": "images",
        "description": "Paragraph illustration via the configured image provider",
    },
]

app = FastAPI(
    title="Illustrated Story Generator API",
    lifespan=lifespan,
    description="""
## Illustrated Story Generator API

Generates multi-paragraph stories in six genres and illustrates each paragraph.

### Providers
- **Text**: `LLM_PROVIDER` = `ollama` (default), `deepinfra`, `gemini`
- **Images**: `IMAGE_PROVIDER` = `mock` (default), `replicate`, `gemini`

### Usage
```bash
# Start server
uvicorn src.api.main:app --host 127.0.0.1 --port 8000

# Generate a story
curl -X POST http://localhost:8000/story/generate \\
  -H "Content-Type: application/json" \\
  -d '{"genre": "fantasy", "characters": 2, "paragraphs": 3}'
```
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=tags_metadata,
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        details.append({
            "field": ".".join(location) or "root",
            "message": error.get("msg", "Invalid value"),
        })
    error = ValidationError(details=details)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log_error(exc, path=request.url.path, method=request.method)
    error = InternalServerError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@app.get("/health/providers")
async def provider_health():
    """
    Configured providers and cached health results.

    Does not trigger live health checks.
    """
    text_config = load_text_provider_config()
    return {
        "text_provider": text_config.provider,
        "image_provider": os.getenv("IMAGE_PROVIDER") or "mock",
        "images_enabled": images_enabled(),
        "health_cache": get_health_cache().get_status(),
    }


app.include_router(
    story.router,
    prefix="/story",
    tags=["story"],
    dependencies=[Depends(limit_request_size), Depends(enforce_rate_limit)],
)
app.include_router(
    images.router,
    prefix="/images",
    tags=["images"],
    dependencies=[Depends(limit_request_size)],
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
