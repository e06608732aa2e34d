"""API dependencies for dependency injection."""

from functools import lru_cache
from typing import Annotated, Generator, Optional

from fastapi import Depends, HTTPException

from glossa.core.config import Settings, get_settings
from glossa.graph.glossary import GlossGraph
from glossa.graph.models import LanguageCode, parse_languages


@lru_cache
def get_settings_cached() -> Settings:
    """Get cached settings."""
    return get_settings()


def get_graph() -> Generator[GlossGraph, None, None]:
    """Get GlossGraph instance for request."""
    settings = get_settings_cached()
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    yield GlossGraph(str(settings.db_path))


def get_native_languages(native_languages: Optional[str] = None) -> Optional[list[LanguageCode]]:
    """Query parameter ``native_languages`` ("eng,deu") as a language list."""
    try:
        return parse_languages(native_languages)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown language in {native_languages!r}")


# Type aliases for cleaner route signatures
Graph = Annotated[GlossGraph, Depends(get_graph)]
NativeLanguages = Annotated[Optional[list[LanguageCode]], Depends(get_native_languages)]
