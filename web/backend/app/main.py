"""FastAPI application for the cueguard moderation service.

Provides REST API endpoints wrapping the cueguard package for:
- Full moderation of posts, comments, meme prompts and bios
- Pre-filter scans (contact detail masking only)
- Bot engagement decisions
- Classifier circuit health
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cueguard import __version__
from web.backend.app.routers import moderation

app = FastAPI(
    title="cueguard API",
    description=(
        "REST API for TheCueRoom content safety pipeline. "
        "Masks off-platform contact details, classifies submissions and "
        "decides when the community bot replies."
    ),
    version=__version__,
)

# ---------------------------------------------------------------------------
# CORS middleware (allow all origins for development)
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Malformed bodies are a client error like blank content, so both map to 400.
@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


# ---------------------------------------------------------------------------
# Include routers
# ---------------------------------------------------------------------------
app.include_router(moderation.router)


# ---------------------------------------------------------------------------
# Root and health-check endpoints
# ---------------------------------------------------------------------------


@app.get("/", tags=["meta"])
async def root():
    """Return basic API information."""
    return {
        "name": "cueguard API",
        "version": __version__,
        "description": "TheCueRoom content safety REST API",
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


@app.get("/health", tags=["meta"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
