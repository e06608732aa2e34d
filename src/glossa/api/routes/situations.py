"""Situation API routes.

Situations are served with their challenge glosses resolved. Passing
``native_languages`` (comma-separated, first one preferred) reduces prompts
to the best matching language and projects challenge glosses onto the
target language and the native languages. Expression challenges start from
the native side, so every listed native language keeps its glosses and
translations.
"""

from typing import Optional

from fastapi import APIRouter

from glossa.graph.models import (
    LanguageCode,
    SituationDTO,
    SituationSummary,
    SituationUpdate,
    SituationWrite,
)

from ..deps import Graph, NativeLanguages
from ..schemas import ERROR_RESPONSES, DataResponse

router = APIRouter(prefix="/api/situations", tags=["situations"], responses=ERROR_RESPONSES)


@router.get("/summary", response_model=DataResponse[list[SituationSummary]])
async def list_situation_summaries(
    graph: Graph,
    target_language: Optional[LanguageCode] = None,
) -> DataResponse[list[SituationSummary]]:
    """List situations without challenge content."""
    return DataResponse(data=graph.list_situation_summaries(target_language=target_language))


@router.get("", response_model=DataResponse[list[SituationDTO]])
async def list_situations(
    graph: Graph,
    native_languages: NativeLanguages,
    identifier: Optional[str] = None,
    target_language: Optional[LanguageCode] = None,
) -> DataResponse[list[SituationDTO]]:
    """List situations with resolved challenges."""
    return DataResponse(
        data=graph.list_situations(identifier, target_language, native_languages)
    )


@router.get("/{identifier}", response_model=DataResponse[SituationDTO])
async def get_situation(
    identifier: str,
    graph: Graph,
    native_languages: NativeLanguages,
) -> DataResponse[SituationDTO]:
    """Get one situation with resolved challenges."""
    return DataResponse(data=graph.get_situation(identifier, native_languages))


@router.post("", response_model=DataResponse[SituationDTO], status_code=201)
async def create_situation(data: SituationWrite, graph: Graph) -> DataResponse[SituationDTO]:
    """Create a situation. Challenge glosses must already exist."""
    return DataResponse(data=graph.create_situation(data))


@router.patch("/{identifier}", response_model=DataResponse[SituationDTO])
async def update_situation(
    identifier: str, data: SituationUpdate, graph: Graph
) -> DataResponse[SituationDTO]:
    """Update a situation. Challenge lists are replaced wholesale."""
    return DataResponse(data=graph.update_situation(identifier, data))


@router.delete("/{identifier}", status_code=204)
async def delete_situation(identifier: str, graph: Graph) -> None:
    """Delete a situation. Its glosses stay."""
    graph.delete_situation(identifier)
