"""Situation download into the local store.

A situation payload carries its challenge glosses with recursive containment
but only references for lateral relations. The downloader fetches the
closure of everything referenced, upserts the glosses, then the situation.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from glossa.graph.models import LanguageCode

from .closure import ClosureFetcher, ClosureResult
from .local_store import LocalSituation, LocalStore
from .remote import GlossApiClient

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class DownloadReport:
    """What a situation download stored."""

    identifier: str
    situation: LocalSituation
    glosses_stored: int
    closure: ClosureResult

    @property
    def failed_ids(self) -> list[str]:
        return list(self.closure.failed)


@dataclass
class BulkDownloadReport:
    target_language: LanguageCode
    reports: list[DownloadReport] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.reports)

    @property
    def glosses_stored(self) -> int:
        return sum(report.glosses_stored for report in self.reports)


class SituationDownloader:
    """Downloads situations and their gloss closures into a local store.

    Example:
        async with GlossApiClient(settings.api_base_url) as client:
            with LocalStore(settings.local_db_path) as local:
                downloader = SituationDownloader(client, local)
                await downloader.download_situation("greeting-basic", ["eng"])
    """

    def __init__(
        self,
        client: GlossApiClient,
        local_store: LocalStore,
        fetcher: Optional[ClosureFetcher] = None,
    ):
        self.client = client
        self.local_store = local_store
        self.fetcher = fetcher or ClosureFetcher(client)

    async def download_summaries(
        self, target_language: LanguageCode
    ) -> list[LocalSituation]:
        """Store situation metadata only; cached challenges are preserved."""
        summaries = await self.client.fetch_situation_summaries(target_language)
        stored = [self.local_store.upsert_situation_summary(summary) for summary in summaries]
        logger.info(f"Stored {len(stored)} situation summaries for {LanguageCode(target_language).value}")
        return stored

    async def download_situation(
        self, identifier: str, native_languages: Optional[list[LanguageCode]] = None
    ) -> DownloadReport:
        """Download one situation with the closure of its glosses.

        Glosses are upserted before the situation so a stored situation
        never points at glosses that were not stored alongside it.

        Raises:
            FetchFailure: If the situation itself cannot be fetched.
        """
        situation = await self.client.fetch_situation(identifier, native_languages)
        closure = await self.fetcher.fetch_closure(situation.glosses())
        if closure.failed:
            logger.warning(
                f"Situation {identifier}: {len(closure.failed)} glosses could not be fetched"
            )

        stored = self.local_store.upsert_many(closure.records)
        local_situation = self.local_store.upsert_situation(situation)
        logger.info(f"Downloaded situation {identifier} with {len(stored)} glosses")
        return DownloadReport(
            identifier=identifier,
            situation=local_situation,
            glosses_stored=len(stored),
            closure=closure,
        )

    async def download_all(
        self,
        target_language: LanguageCode,
        native_languages: Optional[list[LanguageCode]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BulkDownloadReport:
        """Download summaries, then every situation of a target language in turn."""
        report = BulkDownloadReport(target_language=LanguageCode(target_language))
        summaries = await self.download_summaries(target_language)
        total = len(summaries)
        for index, summary in enumerate(summaries, start=1):
            report.reports.append(
                await self.download_situation(summary.identifier, native_languages)
            )
            if on_progress:
                on_progress(index, total)
        return report
