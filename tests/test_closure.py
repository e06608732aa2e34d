"""Tests for the closure fetch client."""

import asyncio
from collections import Counter

import httpx
import pytest

from glossa.errors import FetchFailure
from glossa.graph.models import GlossDTO, GlossRef, LanguageCode
from glossa.sync import ClosureFetcher, GlossApiClient


def _ref(gloss_id: str) -> dict:
    return {"id": gloss_id, "language": "spa", "content": gloss_id}


def _gloss(gloss_id: str, contains=(), **laterals) -> dict:
    return {
        "id": gloss_id,
        "language": "spa",
        "content": gloss_id,
        "contains": [_gloss(child) for child in contains],
        **{kind: [_ref(t) for t in targets] for kind, targets in laterals.items()},
    }


class FakeGlossServer:
    """Serves ``/api/glosses/{id}`` from a dict and counts requests."""

    def __init__(self, glosses: dict[str, dict], failing: set[str] = frozenset(), delay: float = 0.0):
        self.glosses = glosses
        self.failing = failing
        self.delay = delay
        self.requests: Counter[str] = Counter()
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        gloss_id = request.url.path.removeprefix("/api/glosses/")
        self.requests[gloss_id] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if gloss_id in self.failing:
                return httpx.Response(500, json={"detail": "boom"})
            if gloss_id not in self.glosses:
                return httpx.Response(404, json={"detail": "Gloss not found"})
            return httpx.Response(200, json={"data": self.glosses[gloss_id]})
        finally:
            self.in_flight -= 1

    def client(self) -> GlossApiClient:
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(self), base_url="http://glossa.test"
        )
        return GlossApiClient("http://glossa.test", http_client=http)


def _roots(*payloads: dict) -> list[GlossDTO]:
    return [GlossDTO.model_validate(p) for p in payloads]


class TestGlossApiClient:
    """Tests for single-record fetches."""

    @pytest.mark.asyncio
    async def test_fetch_gloss(self):
        server = FakeGlossServer({"hola": _gloss("hola", translations=["hello"])})
        async with server.client() as client:
            gloss = await client.fetch_gloss("hola")
        assert gloss.translations == [GlossRef(id="hello", language=LanguageCode.SPA, content="hello")]

    @pytest.mark.asyncio
    async def test_not_found_is_fetch_failure(self):
        server = FakeGlossServer({})
        async with server.client() as client:
            with pytest.raises(FetchFailure) as exc_info:
                await client.fetch_gloss("missing")
        assert exc_info.value.record_id == "missing"
        assert "404" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_reserved_characters_are_quoted(self):
        server = FakeGlossServer({"a/b?c": _gloss("a/b?c")})
        async with server.client() as client:
            gloss = await client.fetch_gloss("a/b?c")
        assert gloss.id == "a/b?c"
        assert list(server.requests) == ["a/b?c"]

    @pytest.mark.asyncio
    async def test_invalid_payload_is_fetch_failure(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"id": "x"}})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://t")
        async with GlossApiClient("http://t", http_client=http) as client:
            with pytest.raises(FetchFailure):
                await client.fetch_gloss("x")

    @pytest.mark.asyncio
    async def test_invalid_url_is_fetch_failure(self):
        def handler(request):
            raise httpx.InvalidURL("Invalid non-printable ASCII character in URL")

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://t")
        async with GlossApiClient("http://t", http_client=http) as client:
            with pytest.raises(FetchFailure) as exc_info:
                await client.fetch_gloss("x")
        assert exc_info.value.record_id == "x"

    @pytest.mark.asyncio
    async def test_transport_error_is_fetch_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://t")
        async with GlossApiClient("http://t", http_client=http) as client:
            with pytest.raises(FetchFailure):
                await client.fetch_gloss("x")


class TestClosureFetch:
    """Tests for fixpoint discovery."""

    @pytest.mark.asyncio
    async def test_cycle_plus_sibling_fetched_once_each(self):
        # X -> Z -> X over contains, Y a translation of X
        server = FakeGlossServer(
            {
                "X": _gloss("X", contains=["Z"], translations=["Y"]),
                "Z": _gloss("Z", contains=["X"]),
                "Y": _gloss("Y"),
            }
        )
        async with server.client() as client:
            result = await ClosureFetcher(client).fetch_closure(_roots(_gloss("X")))

        assert sorted(result.ids()) == ["X", "Y", "Z"]
        assert server.requests == Counter({"X": 1, "Y": 1, "Z": 1})
        assert result.complete

    @pytest.mark.asyncio
    async def test_references_in_nested_roots_are_discovered(self):
        server = FakeGlossServer(
            {
                "S": _gloss("S", contains=["W"]),
                "W": _gloss("W", near_synonyms=["V"]),
                "V": _gloss("V"),
            }
        )
        root = _gloss("S", contains=["W"])
        root["contains"][0]["near_synonyms"] = [_ref("V")]

        async with server.client() as client:
            result = await ClosureFetcher(client).fetch_closure(_roots(root))

        assert set(result.ids()) == {"S", "W", "V"}
        # Everything was visible up front, so one wave suffices
        assert result.waves == 1

    @pytest.mark.asyncio
    async def test_waves_follow_discovery(self):
        server = FakeGlossServer(
            {
                "A": _gloss("A", translations=["B"]),
                "B": _gloss("B", translations=["C"]),
                "C": _gloss("C"),
            }
        )
        async with server.client() as client:
            result = await ClosureFetcher(client).fetch_closure(_roots(_gloss("A")))

        assert result.ids() == ["A", "B", "C"]
        assert result.waves == 3

    @pytest.mark.asyncio
    async def test_records_are_flat(self):
        server = FakeGlossServer({"X": _gloss("X", contains=["Z"]), "Z": _gloss("Z")})
        async with server.client() as client:
            result = await ClosureFetcher(client).fetch_closure(_roots(_gloss("X")))

        x = next(r for r in result.records if r.id == "X")
        assert [ref.id for ref in x.contains] == ["Z"]

    @pytest.mark.asyncio
    async def test_failures_are_recorded_not_retried(self):
        server = FakeGlossServer(
            {"A": _gloss("A", translations=["B", "C"]), "C": _gloss("C")},
            failing={"B"},
        )
        async with server.client() as client:
            result = await ClosureFetcher(client).fetch_closure(_roots(_gloss("A")))

        assert sorted(result.ids()) == ["A", "C"]
        assert list(result.failed) == ["B"]
        assert server.requests["B"] == 1
        assert not result.complete

    @pytest.mark.asyncio
    async def test_malformed_id_fails_alone(self):
        server = FakeGlossServer(
            {"x": _gloss("x", translations=["bad\nid", "y"]), "y": _gloss("y")}
        )
        async with server.client() as client:
            result = await ClosureFetcher(client).fetch_closure(_roots(_gloss("x")))

        assert sorted(result.ids()) == ["x", "y"]
        assert list(result.failed) == ["bad\nid"]
        assert not result.complete

    @pytest.mark.asyncio
    async def test_ceiling_truncates(self, caplog):
        chain = {f"g{i}": _gloss(f"g{i}", translations=[f"g{i + 1}"]) for i in range(10)}
        server = FakeGlossServer(chain)
        async with server.client() as client:
            result = await ClosureFetcher(client, max_fetches=4).fetch_closure(
                _roots(_gloss("g0"))
            )

        assert result.ids() == ["g0", "g1", "g2", "g3"]
        assert result.truncated
        assert sum(server.requests.values()) == 4
        assert "partial" in caplog.text

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        glosses = {f"g{i}": _gloss(f"g{i}") for i in range(12)}
        server = FakeGlossServer(glosses, delay=0.01)
        root = _gloss("root", translations=list(glosses))
        server.glosses["root"] = root

        async with server.client() as client:
            result = await ClosureFetcher(client, concurrency=3).fetch_closure(_roots(root))

        assert len(result.records) == 13
        assert server.max_in_flight <= 3

    @pytest.mark.asyncio
    async def test_cancel_event(self):
        glosses = {f"g{i}": _gloss(f"g{i}") for i in range(8)}
        server = FakeGlossServer(glosses, delay=0.05)
        root = _gloss("root", translations=list(glosses))
        server.glosses["root"] = root
        cancel = asyncio.Event()

        async with server.client() as client:
            fetcher = ClosureFetcher(client, concurrency=1)
            task = asyncio.create_task(fetcher.fetch_closure(_roots(root), cancel_event=cancel))
            await asyncio.sleep(0.12)
            cancel.set()
            result = await task

        assert result.cancelled
        assert 0 < len(result.records) < 9

    @pytest.mark.asyncio
    async def test_deadline(self):
        glosses = {f"g{i}": _gloss(f"g{i}") for i in range(8)}
        server = FakeGlossServer(glosses, delay=0.05)
        root = _gloss("root", translations=list(glosses))
        server.glosses["root"] = root

        async with server.client() as client:
            deadline = asyncio.get_running_loop().time() + 0.12
            result = await ClosureFetcher(client, concurrency=1).fetch_closure(
                _roots(root), deadline=deadline
            )

        assert result.cancelled
        assert len(result.records) < 9

    @pytest.mark.asyncio
    async def test_empty_roots(self):
        server = FakeGlossServer({})
        async with server.client() as client:
            result = await ClosureFetcher(client).fetch_closure([])
        assert result.records == []
        assert result.waves == 0

    def test_invalid_limits(self):
        with pytest.raises(ValueError):
            ClosureFetcher(client=None, max_fetches=0)
        with pytest.raises(ValueError):
            ClosureFetcher(client=None, concurrency=0)
