"""Tests for the local download cache."""

import pytest

from glossa.graph.models import (
    ChallengeCount,
    Gloss,
    GlossRef,
    LanguageCode,
    LocalizedString,
    SituationDTO,
    SituationSummary,
)
from glossa.sync import LocalStore


def _record(gloss_id: str, content: str = "hola", **kwargs) -> Gloss:
    return Gloss(id=gloss_id, language=LanguageCode.SPA, content=content, **kwargs)


def _situation(identifier: str = "greeting-basic") -> SituationDTO:
    return SituationDTO.model_validate(
        {
            "identifier": identifier,
            "descriptions": [{"language": "eng", "content": "Greeting"}],
            "target_language": "spa",
            "challenges_of_expression": [
                {
                    "identifier": "say-hello",
                    "prompts": [{"language": "deu", "content": "Sag hallo"}],
                    "glosses": [{"id": "hello", "language": "eng", "content": "hello"}],
                }
            ],
            "challenges_of_understanding_text": [
                {
                    "text": "hola",
                    "language": "spa",
                    "glosses": [{"id": "hola", "language": "spa", "content": "hola"}],
                }
            ],
        }
    )


class TestGlossUpsert:
    """Tests for natural-key upsert."""

    def test_insert(self, local_store):
        stored = local_store.upsert(
            _record("r1", translations=[GlossRef(id="e1", language=LanguageCode.ENG, content="hello")])
        )
        assert stored.remote_id == "r1"
        assert stored.translation_ids == ["e1"]

        found = local_store.find_by_language_content(LanguageCode.SPA, "hola")
        assert found.local_id == stored.local_id
        assert found.translation_ids == ["e1"]

    def test_idempotent(self, local_store):
        first = local_store.upsert(_record("r1"))
        second = local_store.upsert(_record("r1"))

        assert second.local_id == first.local_id
        assert local_store.count_glosses() == 1
        assert second.last_synced_at >= first.last_synced_at

    def test_batch_last_write_wins(self, local_store):
        a = _record("r1", transcriptions=["old"])
        a_prime = _record("r2", transcriptions=["new"], is_paraphrased=True)

        stored = local_store.upsert_many([a, a_prime])

        assert local_store.count_glosses() == 1
        found = local_store.find_by_language_content(LanguageCode.SPA, "hola")
        assert found.local_id == stored[0].local_id
        assert found.remote_id == "r2"
        assert found.transcriptions == ["new"]
        assert found.is_paraphrased is True

    def test_existing_local_id_is_kept(self, local_store):
        original = local_store.upsert(_record("r1"))
        [updated] = local_store.upsert_many([_record("r1", transcriptions=["ˈo.la"])])
        assert updated.local_id == original.local_id

    def test_batch_rolls_back_on_error(self, local_store):
        local_store.upsert(_record("r0", content="adiós"))

        class Boom(Exception):
            pass

        def records():
            yield _record("r1", content="hola")
            raise Boom()

        with pytest.raises(Boom):
            local_store.upsert_many(records())
        assert local_store.count_glosses() == 1

    def test_lookups(self, local_store):
        local_store.upsert_many([_record("r1", "hola"), _record("r2", "adiós")])

        assert local_store.get_by_remote_id("r2").content == "adiós"
        assert [g.remote_id for g in local_store.get_by_remote_ids(["r2", "missing", "r1"])] == [
            "r2",
            "r1",
        ]
        assert {g.content for g in local_store.get_glosses_by_language(LanguageCode.SPA)} == {
            "hola",
            "adiós",
        }
        assert local_store.get_glosses_by_language(LanguageCode.ENG) == []

    def test_delete_and_clear(self, local_store):
        stored = local_store.upsert_many([_record("r1", "hola"), _record("r2", "adiós")])
        assert local_store.delete_gloss(stored[0].local_id) is True
        assert local_store.get_gloss(stored[0].local_id) is None
        local_store.clear_glosses()
        assert local_store.count_glosses() == 0


class TestSituationCache:
    """Tests for cached situations."""

    def test_upsert_situation_stores_gloss_ids(self, local_store):
        stored = local_store.upsert_situation(_situation())
        assert stored.challenges_of_expression[0].gloss_ids == ["hello"]
        assert local_store.get_situation("greeting-basic").gloss_ids() == ["hello", "hola"]

    def test_filtered_prompts_are_accepted(self, local_store):
        stored = local_store.upsert_situation(_situation())
        assert [p.language for p in stored.challenges_of_expression[0].prompts] == [
            LanguageCode.DEU
        ]

    def test_summary_preserves_challenges(self, local_store):
        local_store.upsert_situation(_situation())
        summary = SituationSummary(
            identifier="greeting-basic",
            descriptions=[LocalizedString(language=LanguageCode.ENG, content="Saying hi")],
            target_language=LanguageCode.SPA,
            challenge_count=ChallengeCount(expression=1, understanding=1),
        )

        stored = local_store.upsert_situation_summary(summary)

        assert stored.descriptions[0].content == "Saying hi"
        assert len(stored.challenges_of_expression) == 1

    def test_summary_inserts_empty_situation(self, local_store):
        summary = SituationSummary(
            identifier="new",
            descriptions=[LocalizedString(language=LanguageCode.ENG, content="New")],
            target_language=LanguageCode.FRA,
        )
        stored = local_store.upsert_situation_summary(summary)
        assert stored.challenges_of_expression == []
        assert [s.identifier for s in local_store.list_situations(LanguageCode.FRA)] == ["new"]

    def test_delete_situation(self, local_store):
        local_store.upsert_situation(_situation())
        assert local_store.situation_exists("greeting-basic")
        assert local_store.delete_situation("greeting-basic") is True
        assert not local_store.situation_exists("greeting-basic")

    def test_clear_situations_keeps_glosses(self, local_store):
        local_store.upsert(_record("hola"))
        local_store.upsert_situation(_situation("a"))
        local_store.upsert_situation(_situation("b"))

        local_store.clear_situations()

        assert local_store.list_situations() == []
        assert local_store.count_glosses() == 1


class TestLifecycle:
    """Tests for opening and closing the cache."""

    def test_context_manager_closes(self, tmp_path):
        with LocalStore(tmp_path / "cache" / "local.db") as store:
            store.upsert(_record("r1"))
        assert store.is_closed
        with pytest.raises(RuntimeError):
            store.count_glosses()

    def test_persists_across_handles(self, tmp_path):
        path = tmp_path / "local.db"
        with LocalStore(path) as store:
            store.upsert(_record("r1"))
        with LocalStore(path) as store:
            assert store.get_by_remote_id("r1").content == "hola"
