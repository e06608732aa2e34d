"""API routes."""

from .glosses import router as glosses_router
from .situations import router as situations_router

__all__ = [
    "glosses_router",
    "situations_router",
]
