"""Language projection of resolved glosses for situation challenges."""

import copy
from typing import Iterable, Optional

from .models import (
    ChallengeDirection,
    HydratedGloss,
    LanguageCode,
    LocalizedString,
)


def challenge_sides(
    direction: ChallengeDirection,
    target_language: LanguageCode,
    native_language: Optional[LanguageCode],
) -> tuple[Optional[LanguageCode], Optional[LanguageCode]]:
    """Source and opposite language of a challenge.

    Expression challenges start from the native language, understanding
    challenges from the target language.
    """
    if direction == ChallengeDirection.EXPRESSION:
        return native_language, target_language
    return target_language, native_language


def filter_challenge_glosses(
    glosses: Iterable[HydratedGloss],
    target_language: LanguageCode,
    native_language: Optional[LanguageCode] = None,
    direction: ChallengeDirection = ChallengeDirection.UNDERSTANDING,
    other_native_languages: Iterable[LanguageCode] = (),
) -> list[HydratedGloss]:
    """Project challenge glosses onto a target/native language pair.

    Keeps only top-level glosses in the source language, prunes each one's
    ``contains`` to source-language entries and its ``translations`` to
    opposite-language entries. ``other_native_languages`` widen the native
    side, so a learner with several native languages keeps all of them. A
    rule whose language is unknown (no native language given) is skipped.

    Works on deep copies; the input objects are never modified.
    """
    other_native_languages = tuple(other_native_languages)
    source, opposite = challenge_sides(direction, target_language, native_language)
    source_side = _side(source, native_language, other_native_languages)
    opposite_side = _side(opposite, native_language, other_native_languages)

    copies: list[HydratedGloss] = copy.deepcopy(list(glosses))
    if source_side is not None:
        copies = [gloss for gloss in copies if gloss.language in source_side]

    for gloss in copies:
        if source_side is not None:
            gloss.contains = [child for child in gloss.contains if child.language in source_side]
        if opposite_side is not None:
            gloss.translations = [
                translation for translation in gloss.translations
                if translation.language in opposite_side
            ]
    return copies


def _side(
    language: Optional[LanguageCode],
    native_language: Optional[LanguageCode],
    other_native_languages: Iterable[LanguageCode],
) -> Optional[set[LanguageCode]]:
    if language is None:
        return None
    if language == native_language:
        return {language, *other_native_languages}
    return {language}


def filter_localized_strings(
    strings: list[LocalizedString],
    preferred_languages: Optional[list[LanguageCode]] = None,
) -> list[LocalizedString]:
    """Pick the single best string for the preferred languages.

    Tries each preferred language in order, then English, then the first
    string. Without preferences every string is kept.
    """
    if not preferred_languages:
        return list(strings)
    for language in preferred_languages:
        match = next((s for s in strings if s.language == language), None)
        if match:
            return [match]
    english = next((s for s in strings if s.language == LanguageCode.ENG), None)
    if english:
        return [english]
    return list(strings[:1])
