"""GlossGraph - High-level interface for the Glossa gloss graph.

Provides a clean API for gloss and situation operations, wrapping the
lower-level store and resolver.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

from glossa.errors import NotFoundError

from .filters import filter_challenge_glosses, filter_localized_strings
from .models import (
    ChallengeCount,
    ChallengeDirection,
    ChallengeOfExpression,
    ChallengeOfExpressionDTO,
    ChallengeOfUnderstandingText,
    ChallengeOfUnderstandingTextDTO,
    Gloss,
    GlossDTO,
    GlossUpdate,
    GlossWrite,
    HydratedGloss,
    LanguageCode,
    RelationKind,
    Situation,
    SituationDTO,
    SituationSummary,
    SituationUpdate,
    SituationWrite,
    utcnow,
)
from .resolver import GlossResolver
from .store import GlossStore

logger = logging.getLogger(__name__)


class GlossGraph:
    """High-level interface for the gloss graph.

    This is the main class for interacting with glosses and situations.

    Example:
        graph = GlossGraph("./data/glossa.db")
        hola = graph.create_gloss(GlossWrite(language="spa", content="hola"))
        situation = graph.get_situation("greeting-basic", native_languages=["eng"])
    """

    def __init__(self, db_path: str | Path = ":memory:"):
        """Initialize the gloss graph.

        Args:
            db_path: Path to SQLite database, or ":memory:" for in-memory.
        """
        self._store = GlossStore(db_path)
        self._resolver = GlossResolver(self._store)

    @property
    def store(self) -> GlossStore:
        """Access the underlying gloss store."""
        return self._store

    @property
    def resolver(self) -> GlossResolver:
        return self._resolver

    # =========================================================================
    # Gloss Operations
    # =========================================================================

    def create_gloss(self, data: GlossWrite) -> GlossDTO:
        """Create a gloss.

        Raises:
            NotFoundError: If a relation points at an unknown gloss.
            ConflictError: If (language, content) is already taken.
        """
        gloss = Gloss(
            language=data.language,
            content=data.content,
            is_paraphrased=data.is_paraphrased,
            transcriptions=data.transcriptions,
            notes=data.notes,
        )
        self._apply_relations(gloss, data.relation_ids())
        self._store.create_gloss(gloss)
        logger.info(f"Created gloss {gloss.language.value}:{gloss.content!r} ({gloss.id})")
        return self.get_gloss(gloss.id)

    def update_gloss(self, gloss_id: str, data: GlossUpdate) -> GlossDTO:
        """Update a gloss. Omitted fields and relation kinds are kept.

        Raises:
            NotFoundError: If the gloss or a new relation target is unknown.
            ConflictError: If the new (language, content) is already taken.
        """
        gloss = self._store.get_gloss(gloss_id)
        if gloss is None:
            raise NotFoundError(f"Gloss {gloss_id} not found")

        if data.language is not None:
            gloss.language = data.language
        if data.content is not None:
            gloss.content = data.content
        if data.is_paraphrased is not None:
            gloss.is_paraphrased = data.is_paraphrased
        if data.transcriptions is not None:
            gloss.transcriptions = data.transcriptions
        if data.notes is not None:
            gloss.notes = data.notes

        relation_ids = data.relation_ids()
        self._apply_relations(gloss, relation_ids, allow_self=gloss.id)
        gloss.updated_at = utcnow()
        self._store.update_gloss(gloss, kinds=relation_ids.keys())
        return self.get_gloss(gloss_id)

    def _apply_relations(
        self,
        gloss: Gloss,
        relation_ids: dict[RelationKind, list[str]],
        allow_self: Optional[str] = None,
    ) -> None:
        """Set relation references on a record after checking the targets exist."""
        wanted = {target for ids in relation_ids.values() for target in ids}
        refs = self._store.get_refs(wanted)
        if allow_self in wanted:
            refs[allow_self] = gloss.ref()
        missing = wanted - refs.keys()
        if missing:
            raise NotFoundError(f"Referenced gloss not found: {', '.join(sorted(missing))}")
        for kind, ids in relation_ids.items():
            setattr(gloss, kind.value, [refs[target] for target in ids])

    def delete_gloss(self, gloss_id: str) -> None:
        """Delete an unreferenced gloss.

        Raises:
            NotFoundError: If the gloss does not exist.
            ConflictError: If it is still referenced.
        """
        if not self._store.gloss_exists(gloss_id):
            raise NotFoundError(f"Gloss {gloss_id} not found")
        self._store.delete_gloss(gloss_id)
        logger.info(f"Deleted gloss {gloss_id}")

    def get_gloss(self, gloss_id: str) -> GlossDTO:
        """Get a resolved gloss in wire shape.

        Raises:
            NotFoundError: If the gloss does not exist.
        """
        return self._resolver.resolve_single(gloss_id).to_dto()

    def resolve_gloss(self, gloss_id: str) -> HydratedGloss:
        """Get the hydrated gloss graph rooted at a gloss."""
        return self._resolver.resolve_single(gloss_id)

    def list_glosses(
        self, language: Optional[LanguageCode] = None, content: Optional[str] = None
    ) -> list[GlossDTO]:
        """List resolved glosses, most recently updated first."""
        ids = self._store.list_gloss_ids(language, content)
        resolved = self._resolver.resolve_by_ids(ids)
        return [resolved[gloss_id].to_dto() for gloss_id in ids if gloss_id in resolved]

    def find_gloss_id(self, language: LanguageCode, content: str) -> Optional[str]:
        """ID of the gloss with the given natural key, if any."""
        gloss = self._store.find_by_natural_key(language, content)
        return gloss.id if gloss else None

    # =========================================================================
    # Situation Operations
    # =========================================================================

    def create_situation(self, data: SituationWrite) -> SituationDTO:
        """Create a situation.

        Raises:
            NotFoundError: If a challenge references an unknown gloss.
            ConflictError: If the identifier is already taken.
        """
        situation = Situation(**data.model_dump())
        self._check_challenge_glosses(situation)
        self._store.create_situation(situation)
        logger.info(f"Created situation {situation.identifier}")
        return self.get_situation(situation.identifier)

    def update_situation(self, identifier: str, data: SituationUpdate) -> SituationDTO:
        """Update a situation. Challenge lists are replaced when given."""
        situation = self._store.get_situation(identifier)
        if situation is None:
            raise NotFoundError(f"Situation {identifier} not found")

        if data.descriptions is not None:
            situation.descriptions = data.descriptions
        if "image_link" in data.model_fields_set:
            situation.image_link = data.image_link
        if data.target_language is not None:
            situation.target_language = data.target_language
        if data.challenges_of_expression is not None:
            situation.challenges_of_expression = data.challenges_of_expression
        if data.challenges_of_understanding_text is not None:
            situation.challenges_of_understanding_text = data.challenges_of_understanding_text

        self._check_challenge_glosses(situation)
        situation.updated_at = utcnow()
        self._store.update_situation(situation)
        return self.get_situation(identifier)

    def delete_situation(self, identifier: str) -> None:
        """Delete a situation. Its glosses are kept."""
        if not self._store.delete_situation(identifier):
            raise NotFoundError(f"Situation {identifier} not found")
        logger.info(f"Deleted situation {identifier}")

    def get_situation(
        self, identifier: str, native_languages: Optional[list[LanguageCode]] = None
    ) -> SituationDTO:
        """Get a situation with its challenge glosses resolved.

        Raises:
            NotFoundError: If the situation does not exist.
        """
        situation = self._store.get_situation(identifier)
        if situation is None:
            raise NotFoundError(f"Situation {identifier} not found")
        resolved = self._resolver.resolve_by_ids(situation.gloss_ids())
        return self._to_situation_dto(situation, resolved, native_languages)

    def list_situations(
        self,
        identifier: Optional[str] = None,
        target_language: Optional[LanguageCode] = None,
        native_languages: Optional[list[LanguageCode]] = None,
    ) -> list[SituationDTO]:
        """List situations with one resolver pass for all their glosses."""
        situations = self._store.list_situations(identifier, target_language)
        gloss_ids = [gloss_id for s in situations for gloss_id in s.gloss_ids()]
        resolved = self._resolver.resolve_by_ids(gloss_ids)
        return [self._to_situation_dto(s, resolved, native_languages) for s in situations]

    def list_situation_summaries(
        self,
        identifier: Optional[str] = None,
        target_language: Optional[LanguageCode] = None,
    ) -> list[SituationSummary]:
        """Lightweight listing with challenge counts."""
        return [
            SituationSummary(
                identifier=s.identifier,
                descriptions=s.descriptions,
                image_link=s.image_link,
                target_language=s.target_language,
                challenge_count=ChallengeCount(
                    expression=len(s.challenges_of_expression),
                    understanding=len(s.challenges_of_understanding_text),
                ),
            )
            for s in self._store.list_situations(identifier, target_language)
        ]

    def _check_challenge_glosses(self, situation: Situation) -> None:
        wanted = situation.gloss_ids()
        missing = set(wanted) - self._store.get_refs(wanted).keys()
        if missing:
            raise NotFoundError(f"Referenced gloss not found: {', '.join(sorted(missing))}")

    def _to_situation_dto(
        self,
        situation: Situation,
        resolved: dict[str, HydratedGloss],
        native_languages: Optional[list[LanguageCode]],
    ) -> SituationDTO:
        target = situation.target_language
        native = native_languages[0] if native_languages else None

        return SituationDTO(
            identifier=situation.identifier,
            descriptions=situation.descriptions,
            image_link=situation.image_link,
            target_language=target,
            challenges_of_expression=[
                self._expression_dto(challenge, resolved, target, native, native_languages)
                for challenge in situation.challenges_of_expression
            ],
            challenges_of_understanding_text=[
                self._understanding_dto(challenge, resolved, target, native, native_languages)
                for challenge in situation.challenges_of_understanding_text
            ],
        )

    def _expression_dto(
        self,
        challenge: ChallengeOfExpression,
        resolved: dict[str, HydratedGloss],
        target: LanguageCode,
        native: Optional[LanguageCode],
        native_languages: Optional[list[LanguageCode]],
    ) -> ChallengeOfExpressionDTO:
        glosses = _pick(challenge.gloss_ids, resolved)
        if native is not None:
            glosses = filter_challenge_glosses(
                glosses, target, native, ChallengeDirection.EXPRESSION,
                other_native_languages=native_languages[1:],
            )
        return ChallengeOfExpressionDTO(
            identifier=challenge.identifier,
            prompts=filter_localized_strings(challenge.prompts, native_languages),
            glosses=[g.to_dto() for g in glosses],
        )

    def _understanding_dto(
        self,
        challenge: ChallengeOfUnderstandingText,
        resolved: dict[str, HydratedGloss],
        target: LanguageCode,
        native: Optional[LanguageCode],
        native_languages: Optional[list[LanguageCode]],
    ) -> ChallengeOfUnderstandingTextDTO:
        glosses = _pick(challenge.gloss_ids, resolved)
        if native is not None:
            glosses = filter_challenge_glosses(
                glosses, target, native, ChallengeDirection.UNDERSTANDING,
                other_native_languages=native_languages[1:],
            )
        return ChallengeOfUnderstandingTextDTO(
            text=challenge.text,
            language=challenge.language,
            glosses=[g.to_dto() for g in glosses],
        )


def _pick(gloss_ids: Iterable[str], resolved: dict[str, HydratedGloss]) -> list[HydratedGloss]:
    """Resolved glosses in challenge order.

    Raises:
        NotFoundError: If a challenge gloss has disappeared from the store.
    """
    picked = []
    for gloss_id in gloss_ids:
        if gloss_id not in resolved:
            raise NotFoundError(f"Gloss {gloss_id} not found while mapping situation")
        picked.append(resolved[gloss_id])
    return picked
