"""Creation of nested gloss payloads.

Content generation produces glosses as nested payloads: a sentence carries
its words in ``contains``, a word its roots, and so on. This module writes
such payloads into the graph children first, reusing any gloss that already
exists under the same (language, content).
"""

import logging
from typing import Optional

from .glossary import GlossGraph
from .models import GlossPayload, GlossWrite, LanguageCode

logger = logging.getLogger(__name__)


class GlossCreationHelper:
    """Creates glosses with recursive ``contains`` relations.

    Example:
        helper = GlossCreationHelper(graph)
        sentence_id = helper.create_gloss_with_contains(payload, LanguageCode.SPA)
    """

    def __init__(self, graph: GlossGraph):
        self.graph = graph

    def create_gloss_with_contains(self, payload: GlossPayload, language: LanguageCode) -> str:
        """Create a gloss and its contained glosses depth-first.

        An existing gloss with the same natural key is reused as is; its
        payload children are not visited.

        Returns:
            ID of the created or reused gloss.
        """
        existing_id = self.find_existing_gloss_id(language, payload.content)
        if existing_id:
            logger.debug(f"Reusing gloss {existing_id} for {payload.content!r}")
            return existing_id

        contains_ids = [
            self.create_gloss_with_contains(child, language) for child in payload.contains
        ]

        created = self.graph.create_gloss(
            GlossWrite(
                language=language,
                content=payload.content,
                is_paraphrased=payload.is_paraphrased,
                transcriptions=payload.transcriptions,
                notes=payload.notes,
                contains_ids=contains_ids,
                near_synonym_ids=payload.near_synonym_ids,
                near_homophone_ids=payload.near_homophone_ids,
                translation_ids=payload.translation_ids,
                clarifies_usage_ids=payload.clarifies_usage_ids,
                to_be_differentiated_from_ids=payload.to_be_differentiated_from_ids,
            )
        )
        return created.id

    def create_multiple_glosses(
        self, payloads: list[GlossPayload], language: LanguageCode
    ) -> list[str]:
        """Create several payloads in order. Returns their IDs."""
        return [self.create_gloss_with_contains(payload, language) for payload in payloads]

    def find_existing_gloss_id(self, language: LanguageCode, content: str) -> Optional[str]:
        return self.graph.find_gloss_id(language, content)

    def find_duplicates(
        self, payloads: list[GlossPayload], language: LanguageCode
    ) -> list[dict[str, str]]:
        """Top-level payloads that already exist, as ``{"content", "existing_id"}``."""
        duplicates = []
        for payload in payloads:
            existing_id = self.find_existing_gloss_id(language, payload.content)
            if existing_id:
                duplicates.append({"content": payload.content, "existing_id": existing_id})
        return duplicates
