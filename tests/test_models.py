"""Tests for Glossa gloss graph models."""

import copy

import pytest
from pydantic import ValidationError

from glossa.graph.models import (
    LATERAL_RELATIONS,
    ChallengeOfExpression,
    Gloss,
    GlossDTO,
    GlossRef,
    GlossUpdate,
    GlossWrite,
    HydratedGloss,
    LanguageCode,
    LocalizedString,
    RelationKind,
    SituationDTO,
    parse_languages,
)


def _ref(gloss_id: str, content: str, language: LanguageCode = LanguageCode.SPA) -> GlossRef:
    return GlossRef(id=gloss_id, language=language, content=content)


class TestGloss:
    """Tests for the stored gloss record."""

    def test_defaults(self):
        gloss = Gloss(language=LanguageCode.SPA, content="hola")
        assert gloss.id
        assert gloss.is_paraphrased is False
        for kind in RelationKind:
            assert gloss.relations(kind) == []

    def test_ids_are_unique(self):
        a = Gloss(language=LanguageCode.SPA, content="a")
        b = Gloss(language=LanguageCode.SPA, content="b")
        assert a.id != b.id

    def test_empty_content_rejected(self):
        with pytest.raises(ValidationError):
            Gloss(language=LanguageCode.SPA, content="")

    def test_unknown_language_rejected(self):
        with pytest.raises(ValidationError):
            Gloss(language="xxx", content="hola")

    def test_referenced_ids(self):
        gloss = Gloss(
            language=LanguageCode.SPA,
            content="hola",
            contains=[_ref("a", "a")],
            translations=[_ref("b", "hello", LanguageCode.ENG)],
            near_synonyms=[_ref("c", "buenas")],
        )
        assert gloss.relation_ids(RelationKind.CONTAINS) == ["a"]
        assert gloss.referenced_ids() == {"a", "b", "c"}


class TestGlossWrite:
    """Tests for write payloads."""

    def test_relation_ids_are_deduplicated(self):
        data = GlossWrite(
            language=LanguageCode.SPA, content="x", contains_ids=["a", "b", "a", "b"]
        )
        assert data.contains_ids == ["a", "b"]

    def test_relation_ids_cover_all_kinds(self):
        data = GlossWrite(language=LanguageCode.SPA, content="x")
        assert set(data.relation_ids()) == set(RelationKind)

    def test_update_only_reports_given_kinds(self):
        update = GlossUpdate(translation_ids=["a", "a"])
        assert update.relation_ids() == {RelationKind.TRANSLATIONS: ["a"]}

    def test_empty_update(self):
        assert GlossUpdate().relation_ids() == {}


class TestHydratedGloss:
    """Tests for the resolver output shape."""

    def test_equality_is_identity(self):
        a = HydratedGloss(id="x", language=LanguageCode.SPA, content="x")
        b = HydratedGloss(id="x", language=LanguageCode.SPA, content="x")
        assert a != b
        assert a == a

    def test_stub(self):
        stub = HydratedGloss.stub(_ref("x", "hola"))
        assert stub.is_stub
        assert stub.contains == []

    def test_to_dto_renders_back_edge_as_scalar(self):
        a = HydratedGloss(id="a", language=LanguageCode.SPA, content="a")
        b = HydratedGloss(id="b", language=LanguageCode.SPA, content="b")
        a.contains.append(b)
        b.contains.append(a)
        a.near_synonyms.append(b)

        dto = a.to_dto()
        assert dto.contains[0].id == "b"
        back_edge = dto.contains[0].contains[0]
        assert back_edge.id == "a"
        assert back_edge.contains == []
        assert back_edge.near_synonyms == []
        assert dto.near_synonyms == [b.ref()]

    def test_deepcopy_keeps_cycles_shared(self):
        a = HydratedGloss(id="a", language=LanguageCode.SPA, content="a")
        b = HydratedGloss(id="b", language=LanguageCode.SPA, content="b")
        a.contains.append(b)
        b.contains.append(a)

        a2 = copy.deepcopy(a)
        assert a2 is not a
        assert a2.contains[0].contains[0] is a2


class TestGlossDTO:
    """Tests for the wire shape."""

    def test_iter_references_walks_nested_contains(self):
        dto = GlossDTO(
            id="s",
            language=LanguageCode.SPA,
            content="hola, ¿qué tal?",
            contains=[
                GlossDTO(
                    id="qt",
                    language=LanguageCode.SPA,
                    content="qué tal",
                    contains=[GlossDTO(id="q", language=LanguageCode.SPA, content="qué")],
                    near_synonyms=[_ref("cm", "cómo estás")],
                )
            ],
            translations=[_ref("en", "hi, how are you?", LanguageCode.ENG)],
        )
        assert {ref.id for ref in dto.iter_references()} == {"qt", "q", "cm", "en"}

    def test_to_record_flattens_contains(self):
        dto = GlossDTO(
            id="qt",
            language=LanguageCode.SPA,
            content="qué tal",
            contains=[GlossDTO(id="q", language=LanguageCode.SPA, content="qué")],
        )
        record = dto.to_record()
        assert record.contains == [_ref("q", "qué")]
        assert all(record.relations(kind) == [] for kind in LATERAL_RELATIONS)


class TestSituationModels:
    """Tests for situation and challenge models."""

    def test_expression_requires_english_prompt(self):
        with pytest.raises(ValidationError):
            ChallengeOfExpression(
                identifier="say-hello",
                prompts=[LocalizedString(language=LanguageCode.DEU, content="Sag hallo")],
            )

    def test_expression_requires_a_prompt(self):
        with pytest.raises(ValidationError):
            ChallengeOfExpression(identifier="say-hello", prompts=[])

    def test_situation_dto_glosses_deduplicated(self):
        gloss = GlossDTO(id="g", language=LanguageCode.SPA, content="hola")
        dto = SituationDTO.model_validate(
            {
                "identifier": "s",
                "descriptions": [{"language": "eng", "content": "d"}],
                "target_language": "spa",
                "challenges_of_expression": [
                    {"identifier": "c", "prompts": [], "glosses": [gloss.model_dump()]}
                ],
                "challenges_of_understanding_text": [
                    {"text": "hola", "language": "spa", "glosses": [gloss.model_dump()]}
                ],
            }
        )
        assert [g.id for g in dto.glosses()] == ["g"]


class TestParseLanguages:
    """Tests for comma-separated language lists."""

    def test_parses_in_order(self):
        assert parse_languages("deu, eng") == [LanguageCode.DEU, LanguageCode.ENG]

    def test_empty_is_none(self):
        assert parse_languages("") is None
        assert parse_languages(None) is None

    def test_unknown_code(self):
        with pytest.raises(ValueError):
            parse_languages("eng,klingon")
