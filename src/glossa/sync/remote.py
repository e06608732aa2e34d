"""HTTP client for a remote Glossa API.

Every response is wrapped as ``{"data": ...}``; the client unwraps it and
validates the payload into the shared models. Anything that is not a
successful, well-formed response is raised as ``FetchFailure``.
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from glossa.errors import FetchFailure
from glossa.graph.models import GlossDTO, LanguageCode, SituationDTO, SituationSummary

logger = logging.getLogger(__name__)


def _build_timeout(seconds: float) -> httpx.Timeout:
    # Read dominates; connecting should fail fast
    return httpx.Timeout(seconds, connect=min(seconds, 5.0))


class GlossApiClient:
    """Async client for the gloss and situation endpoints.

    Example:
        async with GlossApiClient("http://localhost:8000") as client:
            gloss = await client.fetch_gloss(gloss_id)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Root URL of the API, e.g. "http://localhost:8000".
            timeout: Request timeout in seconds.
            http_client: Preconfigured client (tests pass one with a mock
                transport). It is closed by ``aclose`` like an owned one.
        """
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(
            base_url=self.base_url, timeout=_build_timeout(timeout)
        )

    async def __aenter__(self) -> "GlossApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get_data(
        self, path: str, params: Optional[dict[str, Any]] = None, record_id: Optional[str] = None
    ) -> Any:
        """GET a path and return the unwrapped ``data`` member."""
        try:
            response = await self._http.get(path, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchFailure(f"GET {path} failed: {e}", record_id=record_id) from e

        if response.status_code >= 400:
            raise FetchFailure(
                f"GET {path} returned {response.status_code}", record_id=record_id
            )

        try:
            body = response.json()
        except ValueError as e:
            raise FetchFailure(f"GET {path} returned invalid JSON", record_id=record_id) from e
        if not isinstance(body, dict) or "data" not in body:
            raise FetchFailure(f"GET {path} returned no data member", record_id=record_id)
        return body["data"]

    async def fetch_gloss(self, gloss_id: str) -> GlossDTO:
        """Fetch one gloss by ID.

        Raises:
            FetchFailure: On transport errors, non-2xx responses or an
                invalid payload.
        """
        data = await self._get_data(f"/api/glosses/{quote(gloss_id, safe='')}", record_id=gloss_id)
        try:
            return GlossDTO.model_validate(data)
        except PydanticValidationError as e:
            raise FetchFailure(f"Invalid gloss payload for {gloss_id}", record_id=gloss_id) from e

    async def fetch_situation(
        self, identifier: str, native_languages: Optional[list[LanguageCode]] = None
    ) -> SituationDTO:
        """Fetch a situation with its challenge glosses, optionally language-filtered."""
        params = {}
        if native_languages:
            params["native_languages"] = ",".join(LanguageCode(lang).value for lang in native_languages)
        data = await self._get_data(f"/api/situations/{quote(identifier, safe='')}", params=params)
        try:
            return SituationDTO.model_validate(data)
        except PydanticValidationError as e:
            raise FetchFailure(f"Invalid situation payload for {identifier}") from e

    async def fetch_situation_summaries(
        self, target_language: Optional[LanguageCode] = None
    ) -> list[SituationSummary]:
        """Fetch lightweight situation listings."""
        params = {}
        if target_language:
            params["target_language"] = LanguageCode(target_language).value
        data = await self._get_data("/api/situations/summary", params=params)
        try:
            return [SituationSummary.model_validate(item) for item in data]
        except (PydanticValidationError, TypeError) as e:
            raise FetchFailure("Invalid situation summary payload") from e
