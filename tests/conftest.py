"""Common test fixtures for Glossa tests."""

import pytest
from fastapi.testclient import TestClient

from glossa.api.deps import get_graph
from glossa.api.main import app
from glossa.graph.glossary import GlossGraph
from glossa.graph.models import (
    ChallengeOfExpression,
    ChallengeOfUnderstandingText,
    GlossWrite,
    LanguageCode,
    LocalizedString,
    Note,
    SituationWrite,
)
from glossa.sync.local_store import LocalStore


@pytest.fixture
def test_graph(tmp_path):
    """Create test graph with temp database."""
    db_path = tmp_path / "test.db"
    return GlossGraph(str(db_path))


@pytest.fixture
def local_store():
    """In-memory local cache, closed after the test."""
    store = LocalStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def client(test_graph):
    """Create test client with overridden dependencies."""

    def override_get_graph():
        yield test_graph

    app.dependency_overrides[get_graph] = override_get_graph
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def greeting(test_graph):
    """A small Spanish/English graph around "hola, ¿qué tal?".

    Containment: sentence -> hola, qué tal; qué tal -> qué.
    Translations: sentence <-> english sentence, hola -> hello.
    """
    hello = test_graph.create_gloss(GlossWrite(language=LanguageCode.ENG, content="hello"))
    hi_there = test_graph.create_gloss(
        GlossWrite(language=LanguageCode.ENG, content="hello, how are you?")
    )
    hola = test_graph.create_gloss(
        GlossWrite(
            language=LanguageCode.SPA,
            content="hola",
            transcriptions=["ˈo.la"],
            notes=[Note(note_type="register", content="Informal and neutral")],
            translation_ids=[hello.id],
        )
    )
    que = test_graph.create_gloss(GlossWrite(language=LanguageCode.SPA, content="qué"))
    que_tal = test_graph.create_gloss(
        GlossWrite(language=LanguageCode.SPA, content="qué tal", contains_ids=[que.id])
    )
    sentence = test_graph.create_gloss(
        GlossWrite(
            language=LanguageCode.SPA,
            content="hola, ¿qué tal?",
            contains_ids=[hola.id, que_tal.id],
            translation_ids=[hi_there.id],
        )
    )
    return {
        "hello": hello,
        "hi_there": hi_there,
        "hola": hola,
        "que": que,
        "que_tal": que_tal,
        "sentence": sentence,
    }


@pytest.fixture
def greeting_situation(test_graph, greeting):
    """Situation using the greeting glosses in both challenge types."""
    return test_graph.create_situation(
        SituationWrite(
            identifier="greeting-basic",
            descriptions=[
                LocalizedString(language=LanguageCode.ENG, content="Greeting a friend"),
                LocalizedString(language=LanguageCode.DEU, content="Einen Freund begrüßen"),
            ],
            target_language=LanguageCode.SPA,
            challenges_of_expression=[
                ChallengeOfExpression(
                    identifier="say-hello",
                    prompts=[
                        LocalizedString(language=LanguageCode.ENG, content="Say hello"),
                        LocalizedString(language=LanguageCode.DEU, content="Sag hallo"),
                    ],
                    gloss_ids=[greeting["hello"].id],
                )
            ],
            challenges_of_understanding_text=[
                ChallengeOfUnderstandingText(
                    text="hola, ¿qué tal?",
                    language=LanguageCode.SPA,
                    gloss_ids=[greeting["sentence"].id],
                )
            ],
        )
    )
