"""Gloss API routes.

Provides CRUD operations for glosses. Reads return the resolved gloss:
containment fully nested, lateral relations as references.
"""

from typing import Optional

from fastapi import APIRouter

from glossa.errors import ValidationError
from glossa.graph.models import GlossDTO, GlossUpdate, GlossWrite, LanguageCode

from ..deps import Graph
from ..schemas import ERROR_RESPONSES, DataResponse

router = APIRouter(prefix="/api/glosses", tags=["glosses"], responses=ERROR_RESPONSES)


@router.get("", response_model=DataResponse[list[GlossDTO]])
async def list_glosses(
    graph: Graph,
    language: Optional[LanguageCode] = None,
    content: Optional[str] = None,
) -> DataResponse[list[GlossDTO]]:
    """List glosses, most recently updated first.

    ``content`` matches exactly and only together with ``language``.
    """
    if content is not None and language is None:
        raise ValidationError("Filtering by content requires a language")
    return DataResponse(data=graph.list_glosses(language, content))


@router.get("/{gloss_id}", response_model=DataResponse[GlossDTO])
async def get_gloss(gloss_id: str, graph: Graph) -> DataResponse[GlossDTO]:
    """Get a resolved gloss by ID."""
    return DataResponse(data=graph.get_gloss(gloss_id))


@router.post("", response_model=DataResponse[GlossDTO], status_code=201)
async def create_gloss(data: GlossWrite, graph: Graph) -> DataResponse[GlossDTO]:
    """Create a gloss. Relation targets must already exist."""
    return DataResponse(data=graph.create_gloss(data))


@router.patch("/{gloss_id}", response_model=DataResponse[GlossDTO])
async def update_gloss(
    gloss_id: str, data: GlossUpdate, graph: Graph
) -> DataResponse[GlossDTO]:
    """Update a gloss. Relation sets are replaced only when present."""
    return DataResponse(data=graph.update_gloss(gloss_id, data))


@router.delete("/{gloss_id}", status_code=204)
async def delete_gloss(gloss_id: str, graph: Graph) -> None:
    """Delete a gloss nothing references."""
    graph.delete_gloss(gloss_id)
