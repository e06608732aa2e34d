"""FastAPI application for the Glossa backend."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from glossa import __version__
from glossa.core.config import get_settings
from glossa.errors import GlossaError

from .routes import glosses_router, situations_router
from .schemas import ErrorResponse

logger = logging.getLogger(__name__)


app = FastAPI(
    title="Glossa API",
    description="Multilingual gloss graph with situations and challenges",
    version=__version__,
)

# Configure CORS for the learning and editing frontends
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(glosses_router)
app.include_router(situations_router)


@app.exception_handler(GlossaError)
async def glossa_error_handler(request: Request, exc: GlossaError) -> JSONResponse:
    """Map domain errors to their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code, content=ErrorResponse(detail=exc.message).model_dump()
    )


@app.get("/")
def root() -> dict:
    """Root endpoint."""
    return {"message": "Glossa API", "version": __version__}


@app.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}
