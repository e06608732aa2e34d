"""Pydantic models for the Glossa gloss graph.

Node Types:
- Gloss: A language-tagged word, phrase, sentence or paraphrase
- Situation: A practice scenario bundling descriptions and challenges

Relation Kinds (Gloss → Gloss, stored as sets):
- contains: Recursive decomposition (sentence → words → roots)
- near_synonyms: Similar meaning, different form
- near_homophones: Similar sound, different meaning
- translations: Same meaning in another language
- clarifies_usage: Explains when/how the gloss is used
- to_be_differentiated_from: Easily confused with the gloss

Representations:
- Gloss: flat stored record, every relation is a list of GlossRef
- GlossDTO: wire shape, containment recursive, lateral relations as GlossRef
- HydratedGloss: in-memory resolver output, may contain cycles
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterator, Optional
import uuid

from pydantic import BaseModel, Field, field_validator


def gen_id() -> str:
    """Generate a unique ID."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================


class LanguageCode(str, Enum):
    """ISO 639-3 codes of the supported languages."""

    DEU = "deu"
    ARZ = "arz"
    ARB = "arb"
    APC = "apc"
    CMN = "cmn"
    FRA = "fra"
    SPA = "spa"
    UZB = "uzb"
    ENG = "eng"


LANGUAGES: dict[LanguageCode, dict[str, str]] = {
    LanguageCode.DEU: {"name": "German", "emoji": "🇩🇪"},
    LanguageCode.ARZ: {"name": "Egyptian Arabic", "emoji": "🇪🇬"},
    LanguageCode.ARB: {"name": "Standard Arabic"},
    LanguageCode.APC: {"name": "Levantine Arabic", "emoji": "🇱🇧"},
    LanguageCode.CMN: {"name": "Mandarin Chinese", "emoji": "🇨🇳"},
    LanguageCode.FRA: {"name": "French", "emoji": "🇫🇷"},
    LanguageCode.SPA: {"name": "Spanish", "emoji": "🇪🇸"},
    LanguageCode.UZB: {"name": "Uzbek", "emoji": "🇺🇿"},
    LanguageCode.ENG: {"name": "English"},
}


def parse_languages(value: Optional[str]) -> Optional[list[LanguageCode]]:
    """Parse a comma-separated language list such as "eng,deu".

    Raises:
        ValueError: On an unknown language code.
    """
    if not value:
        return None
    codes = [part.strip() for part in value.split(",") if part.strip()]
    return [LanguageCode(code) for code in codes] or None


class RelationKind(str, Enum):
    """The six relation kinds between glosses."""

    CONTAINS = "contains"  # Traversed to unbounded depth
    NEAR_SYNONYMS = "near_synonyms"
    NEAR_HOMOPHONES = "near_homophones"
    TRANSLATIONS = "translations"
    CLARIFIES_USAGE = "clarifies_usage"
    TO_BE_DIFFERENTIATED_FROM = "to_be_differentiated_from"


# Traversed exactly one hop during resolution
LATERAL_RELATIONS: tuple[RelationKind, ...] = (
    RelationKind.NEAR_SYNONYMS,
    RelationKind.NEAR_HOMOPHONES,
    RelationKind.TRANSLATIONS,
    RelationKind.CLARIFIES_USAGE,
    RelationKind.TO_BE_DIFFERENTIATED_FROM,
)

# Write payload field holding the target IDs of each relation kind
RELATION_ID_FIELDS: dict[RelationKind, str] = {
    RelationKind.CONTAINS: "contains_ids",
    RelationKind.NEAR_SYNONYMS: "near_synonym_ids",
    RelationKind.NEAR_HOMOPHONES: "near_homophone_ids",
    RelationKind.TRANSLATIONS: "translation_ids",
    RelationKind.CLARIFIES_USAGE: "clarifies_usage_ids",
    RelationKind.TO_BE_DIFFERENTIATED_FROM: "to_be_differentiated_from_ids",
}


class ChallengeDirection(str, Enum):
    """Which way a challenge asks the learner to go."""

    EXPRESSION = "expression"  # Native → target, learner produces output
    UNDERSTANDING = "understanding"  # Target → native, learner comprehends


def _unique(ids: list[str]) -> list[str]:
    """Drop duplicate IDs, keeping first occurrence."""
    return list(dict.fromkeys(ids))


# =============================================================================
# Value Models
# =============================================================================


class LocalizedString(BaseModel):
    """A piece of text tagged with its language."""

    language: LanguageCode
    content: str = Field(min_length=1)


class GlossRef(BaseModel):
    """Minimal reference to a gloss: identity plus natural key."""

    id: str
    language: LanguageCode
    content: str


class Note(BaseModel):
    """A note attached to a gloss."""

    note_type: str = Field(min_length=1)  # "grammar", "register", "false-friend"
    content: str = Field(min_length=1)
    show_before_solution: bool = False  # Reveal before the learner solves


# =============================================================================
# Gloss Models
# =============================================================================


class Gloss(BaseModel):
    """Stored gloss record. Relations are denormalized references."""

    id: str = Field(default_factory=gen_id)
    language: LanguageCode
    content: str = Field(min_length=1)
    is_paraphrased: bool = False  # Descriptive meta-language, not a literal quote
    transcriptions: list[str] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)

    contains: list[GlossRef] = Field(default_factory=list)
    near_synonyms: list[GlossRef] = Field(default_factory=list)
    near_homophones: list[GlossRef] = Field(default_factory=list)
    translations: list[GlossRef] = Field(default_factory=list)
    clarifies_usage: list[GlossRef] = Field(default_factory=list)
    to_be_differentiated_from: list[GlossRef] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def relations(self, kind: RelationKind) -> list[GlossRef]:
        """References of one relation kind."""
        return getattr(self, kind.value)

    def relation_ids(self, kind: RelationKind) -> list[str]:
        """Target IDs of one relation kind."""
        return [ref.id for ref in self.relations(kind)]

    def referenced_ids(self) -> set[str]:
        """Target IDs across all six relation kinds."""
        return {ref.id for kind in RelationKind for ref in self.relations(kind)}

    def ref(self) -> GlossRef:
        return GlossRef(id=self.id, language=self.language, content=self.content)


class GlossDTO(BaseModel):
    """Wire representation of a resolved gloss.

    Containment is fully recursive; lateral relations are minimal references.
    """

    id: str
    language: LanguageCode
    content: str
    is_paraphrased: bool = False
    transcriptions: list[str] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)

    contains: list["GlossDTO"] = Field(default_factory=list)
    near_synonyms: list[GlossRef] = Field(default_factory=list)
    near_homophones: list[GlossRef] = Field(default_factory=list)
    translations: list[GlossRef] = Field(default_factory=list)
    clarifies_usage: list[GlossRef] = Field(default_factory=list)
    to_be_differentiated_from: list[GlossRef] = Field(default_factory=list)

    def ref(self) -> GlossRef:
        return GlossRef(id=self.id, language=self.language, content=self.content)

    def iter_references(self) -> Iterator[GlossRef]:
        """Yield every relation reference found anywhere in this payload.

        Walks nested ``contains`` objects as well; each nested object is
        visited once even if it appears several times.
        """
        seen: set[int] = set()
        stack: list[GlossDTO] = [self]
        while stack:
            dto = stack.pop()
            if id(dto) in seen:
                continue
            seen.add(id(dto))
            for child in dto.contains:
                yield child.ref()
                stack.append(child)
            for kind in LATERAL_RELATIONS:
                yield from getattr(dto, kind.value)

    def to_record(self) -> Gloss:
        """Flatten into a stored-record shape (containment as references)."""
        return Gloss(
            id=self.id,
            language=self.language,
            content=self.content,
            is_paraphrased=self.is_paraphrased,
            transcriptions=list(self.transcriptions),
            notes=[note.model_copy() for note in self.notes],
            contains=[child.ref() for child in self.contains],
            near_synonyms=list(self.near_synonyms),
            near_homophones=list(self.near_homophones),
            translations=list(self.translations),
            clarifies_usage=list(self.clarifies_usage),
            to_be_differentiated_from=list(self.to_be_differentiated_from),
        )


@dataclass(eq=False)
class HydratedGloss:
    """A resolved gloss with its relations as object references.

    Instances are shared between every place that references the same gloss,
    so the graph may contain cycles. Equality is identity.
    """

    id: str
    language: LanguageCode
    content: str
    is_paraphrased: bool = False
    transcriptions: list[str] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)
    is_stub: bool = False  # Scalar identity only, relations not loaded

    contains: list["HydratedGloss"] = field(default_factory=list, repr=False)
    near_synonyms: list["HydratedGloss"] = field(default_factory=list, repr=False)
    near_homophones: list["HydratedGloss"] = field(default_factory=list, repr=False)
    translations: list["HydratedGloss"] = field(default_factory=list, repr=False)
    clarifies_usage: list["HydratedGloss"] = field(default_factory=list, repr=False)
    to_be_differentiated_from: list["HydratedGloss"] = field(default_factory=list, repr=False)

    @classmethod
    def from_record(cls, record: Gloss) -> "HydratedGloss":
        """Scalar fields of a record, relations left empty."""
        return cls(
            id=record.id,
            language=record.language,
            content=record.content,
            is_paraphrased=record.is_paraphrased,
            transcriptions=list(record.transcriptions),
            notes=list(record.notes),
        )

    @classmethod
    def stub(cls, ref: GlossRef) -> "HydratedGloss":
        """Scalar-only gloss for a reference outside the loaded set."""
        return cls(id=ref.id, language=ref.language, content=ref.content, is_stub=True)

    def relations(self, kind: RelationKind) -> list["HydratedGloss"]:
        return getattr(self, kind.value)

    def ref(self) -> GlossRef:
        return GlossRef(id=self.id, language=self.language, content=self.content)

    def to_dto(self) -> GlossDTO:
        """Render as a finite wire tree.

        A containment back-edge (an ancestor reappearing below itself) is
        rendered as a scalar-only DTO with empty relations.
        """
        return self._to_dto(frozenset())

    def _to_dto(self, path: frozenset[str]) -> GlossDTO:
        if self.id in path:
            return GlossDTO(
                id=self.id,
                language=self.language,
                content=self.content,
                is_paraphrased=self.is_paraphrased,
                transcriptions=list(self.transcriptions),
                notes=list(self.notes),
            )
        path = path | {self.id}
        return GlossDTO(
            id=self.id,
            language=self.language,
            content=self.content,
            is_paraphrased=self.is_paraphrased,
            transcriptions=list(self.transcriptions),
            notes=list(self.notes),
            contains=[child._to_dto(path) for child in self.contains],
            **{
                kind.value: [target.ref() for target in self.relations(kind)]
                for kind in LATERAL_RELATIONS
            },
        )


# =============================================================================
# Gloss Write Models
# =============================================================================


class GlossWrite(BaseModel):
    """Input for creating a gloss. Relations are given as target IDs."""

    language: LanguageCode
    content: str = Field(min_length=1)
    is_paraphrased: bool = False
    transcriptions: list[str] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)

    contains_ids: list[str] = Field(default_factory=list)
    near_synonym_ids: list[str] = Field(default_factory=list)
    near_homophone_ids: list[str] = Field(default_factory=list)
    translation_ids: list[str] = Field(default_factory=list)
    clarifies_usage_ids: list[str] = Field(default_factory=list)
    to_be_differentiated_from_ids: list[str] = Field(default_factory=list)

    @field_validator(*RELATION_ID_FIELDS.values())
    @classmethod
    def dedupe_ids(cls, value: list[str]) -> list[str]:
        return _unique(value)

    def relation_ids(self) -> dict[RelationKind, list[str]]:
        return {kind: getattr(self, name) for kind, name in RELATION_ID_FIELDS.items()}


class GlossUpdate(BaseModel):
    """Partial update of a gloss. Relation sets are replaced when given."""

    language: Optional[LanguageCode] = None
    content: Optional[str] = Field(default=None, min_length=1)
    is_paraphrased: Optional[bool] = None
    transcriptions: Optional[list[str]] = None
    notes: Optional[list[Note]] = None

    contains_ids: Optional[list[str]] = None
    near_synonym_ids: Optional[list[str]] = None
    near_homophone_ids: Optional[list[str]] = None
    translation_ids: Optional[list[str]] = None
    clarifies_usage_ids: Optional[list[str]] = None
    to_be_differentiated_from_ids: Optional[list[str]] = None

    @field_validator(*RELATION_ID_FIELDS.values())
    @classmethod
    def dedupe_ids(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return None if value is None else _unique(value)

    def relation_ids(self) -> dict[RelationKind, list[str]]:
        """Only the relation kinds present in the update."""
        return {
            kind: getattr(self, name)
            for kind, name in RELATION_ID_FIELDS.items()
            if getattr(self, name) is not None
        }


class GlossPayload(BaseModel):
    """Nested gloss as produced by content generation.

    Children in ``contains`` are created before their parent.
    """

    content: str = Field(min_length=1)
    is_paraphrased: bool = False
    transcriptions: list[str] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)
    contains: list["GlossPayload"] = Field(default_factory=list)

    near_synonym_ids: list[str] = Field(default_factory=list)
    near_homophone_ids: list[str] = Field(default_factory=list)
    translation_ids: list[str] = Field(default_factory=list)
    clarifies_usage_ids: list[str] = Field(default_factory=list)
    to_be_differentiated_from_ids: list[str] = Field(default_factory=list)


# =============================================================================
# Situation Models
# =============================================================================


def _require_english_prompt(prompts: list[LocalizedString]) -> list[LocalizedString]:
    if not any(p.language == LanguageCode.ENG for p in prompts):
        raise ValueError("At least one English prompt is required")
    return prompts


class ChallengeOfExpression(BaseModel):
    """Produce target-language output for a prompt. Glosses are native-language."""

    identifier: str = Field(min_length=1)
    prompts: list[LocalizedString] = Field(min_length=1)
    gloss_ids: list[str] = Field(default_factory=list)

    @field_validator("prompts")
    @classmethod
    def check_prompts(cls, value: list[LocalizedString]) -> list[LocalizedString]:
        return _require_english_prompt(value)


class ChallengeOfUnderstandingText(BaseModel):
    """Understand a target-language utterance. Glosses are target-language."""

    text: str = Field(min_length=1)
    language: LanguageCode
    gloss_ids: list[str] = Field(default_factory=list)


class Situation(BaseModel):
    """A practice scenario. References glosses, never owns them."""

    identifier: str = Field(min_length=1)  # "greeting-basic"
    descriptions: list[LocalizedString] = Field(min_length=1)
    image_link: Optional[str] = None
    target_language: LanguageCode
    challenges_of_expression: list[ChallengeOfExpression] = Field(default_factory=list)
    challenges_of_understanding_text: list[ChallengeOfUnderstandingText] = Field(
        default_factory=list
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def gloss_ids(self) -> list[str]:
        """Every gloss referenced by a challenge, first occurrence order."""
        ids: list[str] = []
        for challenge in self.challenges_of_expression:
            ids.extend(challenge.gloss_ids)
        for challenge in self.challenges_of_understanding_text:
            ids.extend(challenge.gloss_ids)
        return _unique(ids)


class SituationWrite(BaseModel):
    """Input for creating a situation."""

    identifier: str = Field(min_length=1)
    descriptions: list[LocalizedString] = Field(min_length=1)
    image_link: Optional[str] = None
    target_language: LanguageCode
    challenges_of_expression: list[ChallengeOfExpression] = Field(default_factory=list)
    challenges_of_understanding_text: list[ChallengeOfUnderstandingText] = Field(
        default_factory=list
    )


class SituationUpdate(BaseModel):
    """Partial update of a situation. Challenge lists are replaced when given."""

    descriptions: Optional[list[LocalizedString]] = Field(default=None, min_length=1)
    image_link: Optional[str] = None
    target_language: Optional[LanguageCode] = None
    challenges_of_expression: Optional[list[ChallengeOfExpression]] = None
    challenges_of_understanding_text: Optional[list[ChallengeOfUnderstandingText]] = None


class ChallengeOfExpressionDTO(BaseModel):
    identifier: str
    prompts: list[LocalizedString]
    glosses: list[GlossDTO]


class ChallengeOfUnderstandingTextDTO(BaseModel):
    text: str
    language: LanguageCode
    glosses: list[GlossDTO]


class SituationDTO(BaseModel):
    """A situation as served: challenges carry resolved glosses."""

    identifier: str
    descriptions: list[LocalizedString]
    image_link: Optional[str] = None
    target_language: LanguageCode
    challenges_of_expression: list[ChallengeOfExpressionDTO] = Field(default_factory=list)
    challenges_of_understanding_text: list[ChallengeOfUnderstandingTextDTO] = Field(
        default_factory=list
    )

    def glosses(self) -> list[GlossDTO]:
        """All challenge glosses, deduplicated by ID."""
        by_id: dict[str, GlossDTO] = {}
        for expression in self.challenges_of_expression:
            for gloss in expression.glosses:
                by_id.setdefault(gloss.id, gloss)
        for understanding in self.challenges_of_understanding_text:
            for gloss in understanding.glosses:
                by_id.setdefault(gloss.id, gloss)
        return list(by_id.values())


class ChallengeCount(BaseModel):
    expression: int = 0
    understanding: int = 0


class SituationSummary(BaseModel):
    """Lightweight situation listing without challenge content."""

    identifier: str
    descriptions: list[LocalizedString]
    image_link: Optional[str] = None
    target_language: LanguageCode
    challenge_count: ChallengeCount = Field(default_factory=ChallengeCount)
