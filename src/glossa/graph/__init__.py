"""Gloss Graph - models, store, resolver, and filters."""

from .models import (
    # Enums
    ChallengeDirection,
    LanguageCode,
    RelationKind,
    LANGUAGES,
    LATERAL_RELATIONS,
    # Value models
    GlossRef,
    LocalizedString,
    Note,
    # Gloss models
    Gloss,
    GlossDTO,
    GlossPayload,
    GlossUpdate,
    GlossWrite,
    HydratedGloss,
    # Situation models
    ChallengeCount,
    ChallengeOfExpression,
    ChallengeOfExpressionDTO,
    ChallengeOfUnderstandingText,
    ChallengeOfUnderstandingTextDTO,
    Situation,
    SituationDTO,
    SituationSummary,
    SituationUpdate,
    SituationWrite,
    # Utilities
    gen_id,
    parse_languages,
)
from .store import GlossStore
from .resolver import GlossResolver, RecordSource
from .filters import challenge_sides, filter_challenge_glosses, filter_localized_strings
from .glossary import GlossGraph
from .creation import GlossCreationHelper

__all__ = [
    # Store, resolver, and facade
    "GlossStore",
    "GlossResolver",
    "RecordSource",
    "GlossGraph",
    "GlossCreationHelper",
    # Filters
    "challenge_sides",
    "filter_challenge_glosses",
    "filter_localized_strings",
    # Enums
    "ChallengeDirection",
    "LanguageCode",
    "RelationKind",
    "LANGUAGES",
    "LATERAL_RELATIONS",
    # Value models
    "GlossRef",
    "LocalizedString",
    "Note",
    # Gloss models
    "Gloss",
    "GlossDTO",
    "GlossPayload",
    "GlossUpdate",
    "GlossWrite",
    "HydratedGloss",
    # Situation models
    "ChallengeCount",
    "ChallengeOfExpression",
    "ChallengeOfExpressionDTO",
    "ChallengeOfUnderstandingText",
    "ChallengeOfUnderstandingTextDTO",
    "Situation",
    "SituationDTO",
    "SituationSummary",
    "SituationUpdate",
    "SituationWrite",
    # Utilities
    "gen_id",
    "parse_languages",
]
